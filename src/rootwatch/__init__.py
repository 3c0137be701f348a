"""rootwatch: File change watching that falls back to an elevated inotifywait."""

__version__ = "0.1.0"

# Public API
from rootwatch.controller import WatcherController
from rootwatch.dispatch import Dispatcher, LoopDispatcher, ThreadDispatcher
from rootwatch.file_watcher import NativeWatchSource
from rootwatch.shell_watcher import SessionState, ShellSession, ShellWatchSource
from rootwatch_core.models import EventMask

__all__ = [
    "__version__",
    # Primary components
    "WatcherController",
    "EventMask",
    # Dispatch
    "Dispatcher",
    "LoopDispatcher",
    "ThreadDispatcher",
    # Sources
    "NativeWatchSource",
    "ShellWatchSource",
    "ShellSession",
    "SessionState",
]
