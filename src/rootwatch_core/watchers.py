"""Abstract event source protocol and watch configuration."""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from rootwatch_core.models import EventMask, ObservedEvent, SourceKind

EventCallback = Callable[[ObservedEvent], None]
"""Called by a source, on the source's own thread, for every raw occurrence."""


@dataclass
class WatcherConfig:
    """Configuration for one watched path."""

    path: Path
    """File or directory to watch."""

    mask: EventMask = EventMask.ALL_EVENTS
    """Event kinds to report."""


class WatchSource(Protocol):
    """Protocol for raw event sources driven by a WatcherController."""

    kind: SourceKind

    def start(self) -> None:
        """Begin producing events. Raises SourceStartError on failure."""
        ...

    def stop(self) -> None:
        """Stop producing events. Safe to call more than once."""
        ...
