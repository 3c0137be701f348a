"""Pytest configuration and fixtures."""

import os
import shlex
import sys
import threading
import time
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from rootwatch_core.binaries import ArchitectureBinaryResolver, BinaryConfig  # noqa: E402
from rootwatch_core.elevation import NoElevator  # noqa: E402


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class EventCollector:
    """Handler that records (mask, path) calls and the thread they ran on."""

    def __init__(self):
        self.events = []
        self.threads = set()
        self._lock = threading.Lock()

    def __call__(self, mask, path):
        with self._lock:
            self.events.append((mask, path))
            self.threads.add(threading.current_thread().name)

    def wait_for(self, count: int = 1, timeout: float = 5.0) -> bool:
        return wait_until(lambda: len(self.events) >= count, timeout)


class RecordingNotifier:
    """Notifier that keeps every message."""

    def __init__(self):
        self.infos = []
        self.warnings = []
        self.errors = []

    def info(self, msg):
        self.infos.append(msg)

    def warning(self, msg):
        self.warnings.append(msg)

    def error(self, msg):
        self.errors.append(msg)


class ExitingShellElevator(NoElevator):
    """Shell that reads one command, ignores it and exits with status 4."""

    def __init__(self):
        super().__init__(always_available=True)

    def shell_argv(self):
        return ["sh", "-c", "read -r cmd; exit 4"]


@pytest.fixture
def collector():
    return EventCollector()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def elevator():
    """Unprivileged shell that always reports elevation as available."""
    return NoElevator(always_available=True)


@pytest.fixture
def fake_inotifywait(tmp_path):
    """Factory writing a stand-in inotifywait script.

    The script records its arguments in <tmp>/args-<n>.txt, prints the given
    lines, then either sleeps (like inotifywait -m) or exits with status 3.
    With echo_path it first prints a CREATE line for its watched path.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def make(*lines: str, exit_after: bool = False, echo_path: bool = False) -> Path:
        script = bin_dir / "inotifywait"
        body = ["#!/bin/sh", f"printf '%s\\n' \"$@\" > {shlex.quote(str(tmp_path))}/args-$$.txt"]
        if echo_path:
            # The watched path is the last argument
            body += ["for path; do :; done", "printf '%s,CREATE,seen\\n' \"$path\""]
        body += [f"printf '%s\\n' {shlex.quote(line)}" for line in lines]
        body.append("exit 3" if exit_after else "exec sleep 30")
        script.write_text("\n".join(body) + "\n")
        script.chmod(0o755)
        return script

    return make


@pytest.fixture
def resolver_for():
    """Factory building a resolver pinned to a given binary."""

    def make(binary: Path) -> ArchitectureBinaryResolver:
        return ArchitectureBinaryResolver(BinaryConfig(path=binary))

    return make


@pytest.fixture
def deny_read(monkeypatch):
    """Make every path look unreadable to os.access(path, os.R_OK)."""
    real_access = os.access

    def access(path, mode, *args, **kwargs):
        if mode == os.R_OK:
            return False
        return real_access(path, mode, *args, **kwargs)

    monkeypatch.setattr(os, "access", access)
