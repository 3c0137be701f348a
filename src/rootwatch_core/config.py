"""Configuration parsing for rootwatch."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from rootwatch_core.binaries import BinaryConfig
from rootwatch_core.elevation import ELEVATORS
from rootwatch_core.models import EventMask
from rootwatch_core.watchers import WatcherConfig

logger = logging.getLogger(__name__)


@dataclass
class WatchSettings:
    """Everything a config file can specify."""

    watches: list[WatcherConfig] = field(default_factory=list)
    """Paths to watch."""

    elevation: str = "sudo"
    """Elevation method used when a path is not directly readable."""

    binary: BinaryConfig = field(default_factory=BinaryConfig)
    """Watch utility lookup settings."""


def _resolve(base: Path, value: str | None) -> Path | None:
    if value is None:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


def load_watch_config(path: str | Path) -> WatchSettings:
    """Load watcher configuration from a TOML file.

    Relative paths in the file are resolved against the file's directory.

    Args:
        path: Path to TOML config file

    Returns:
        Parsed settings

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid TOML or has invalid values
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e

    base = path.parent

    elevation = raw.get("elevation", {}).get("method", "sudo")
    if elevation not in ELEVATORS:
        raise ValueError(
            f"Invalid elevation method '{elevation}' in {path}. Valid methods: {', '.join(ELEVATORS)}"
        )

    binary_raw = raw.get("binary", {})
    binary = BinaryConfig(
        path=_resolve(base, binary_raw.get("path")),
        bundle_dir=_resolve(base, binary_raw.get("bundle_dir")),
    )
    if "cache_dir" in binary_raw:
        binary.cache_dir = _resolve(base, binary_raw["cache_dir"])
    if "name" in binary_raw:
        binary.name = binary_raw["name"]

    watches = []
    for index, w in enumerate(raw.get("watch", [])):
        if not w.get("path"):
            raise ValueError(f"Watch #{index + 1} in {path} is missing 'path'")
        events = w.get("events", ["ALL"])
        if isinstance(events, str):
            events = [events]
        watches.append(
            WatcherConfig(path=_resolve(base, w["path"]), mask=EventMask.from_names(events))
        )

    if not watches:
        logger.warning(f"No [[watch]] entries in {path}")

    return WatchSettings(watches=watches, elevation=elevation, binary=binary)
