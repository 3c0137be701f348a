"""Locate or provision the inotifywait binary for the current CPU architecture."""

import logging
import os
import platform
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path

from rootwatch_core.errors import BinaryNotFoundError

logger = logging.getLogger(__name__)

BINARY_NAME = "inotifywait"

DEFAULT_ARCHITECTURE = "armeabi-v7a"

# platform.machine() value -> bundle folder name
ARCHITECTURE_FOLDERS = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "arm64-v8a",
    "arm64": "arm64-v8a",
    "armv8l": "armeabi-v7a",
    "armv7l": "armeabi-v7a",
    "armv7": "armeabi-v7a",
    "armv6l": "armeabi",
    "armv5tel": "armeabi",
    "armv5tejl": "armeabi",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "x86": "x86",
    "mips": "mips",
    "mipsel": "mips",
    "mips64": "mips",
}


def default_cache_dir() -> Path:
    """Per-user cache directory for provisioned binaries."""
    base = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(base) / "rootwatch"


def detect_architecture(machine: str | None = None) -> str:
    """Map a machine name to its bundle folder.

    Args:
        machine: Value like platform.machine() returns; detected when omitted

    Returns:
        Folder name such as "x86_64" or "armeabi-v7a"
    """
    machine = (machine if machine is not None else platform.machine()).lower()
    return ARCHITECTURE_FOLDERS.get(machine, DEFAULT_ARCHITECTURE)


@dataclass
class BinaryConfig:
    """Where to find the watch utility."""

    path: Path | None = None
    """Explicit binary to use. Skips every other lookup."""

    bundle_dir: Path | None = None
    """Directory holding <arch>/inotifywait builds to provision from."""

    cache_dir: Path = field(default_factory=default_cache_dir)
    """Where provisioned copies are installed."""

    name: str = BINARY_NAME
    """Binary file name, also used for the PATH lookup."""


class ArchitectureBinaryResolver:
    """Supplies an absolute, executable path to the watch utility.

    Lookup order: explicit path, cached copy, copy provisioned from the
    bundle directory, then PATH. Provisioning happens at most once per
    resolver; concurrent callers wait for it.
    """

    def __init__(self, config: BinaryConfig | None = None, machine: str | None = None):
        self.config = config or BinaryConfig()
        self.architecture = detect_architecture(machine)
        self._lock = threading.Lock()
        self._resolved: Path | None = None

    @property
    def cached_path(self) -> Path:
        return Path(self.config.cache_dir).expanduser() / self.architecture / self.config.name

    @property
    def bundled_path(self) -> Path | None:
        if self.config.bundle_dir is None:
            return None
        return Path(self.config.bundle_dir).expanduser() / self.architecture / self.config.name

    def resolve(self) -> Path:
        """Return the binary path, provisioning it on first use if needed.

        Raises:
            BinaryNotFoundError: If no runnable binary is available
        """
        with self._lock:
            if self._resolved is None:
                self._resolved = self._lookup()
                logger.debug(f"Using {self.config.name} at {self._resolved}")
            return self._resolved

    def _lookup(self) -> Path:
        if self.config.path is not None:
            explicit = Path(self.config.path).expanduser().absolute()
            if not _is_executable(explicit):
                raise BinaryNotFoundError(f"Configured binary is not executable: {explicit}")
            return explicit

        if _is_executable(self.cached_path):
            return self.cached_path.absolute()

        provisioned = self.provision()
        if provisioned is not None:
            return provisioned

        found = shutil.which(self.config.name)
        if found:
            return Path(found).absolute()

        raise BinaryNotFoundError(
            f"No {self.config.name} binary for architecture '{self.architecture}': "
            f"not bundled, not cached in {self.cached_path.parent}, not on PATH"
        )

    def provision(self) -> Path | None:
        """Copy the bundled binary into the cache directory.

        Returns:
            The installed path, or None if nothing is bundled for this architecture
        """
        source = self.bundled_path
        if source is None or not source.is_file():
            return None

        target = self.cached_path
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        target.chmod(0o755)
        logger.info(f"Provisioned {self.config.name} ({self.architecture}) to {target}")
        return target.absolute()


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)
