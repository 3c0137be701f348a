"""Shared data models for rootwatch_core."""

import os
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum, IntFlag
from pathlib import Path, PurePath


class EventMask(IntFlag):
    """inotify event kinds, using the kernel's bit values."""

    ACCESS = 0x00000001
    MODIFY = 0x00000002
    ATTRIB = 0x00000004
    CLOSE_WRITE = 0x00000008
    CLOSE_NOWRITE = 0x00000010
    OPEN = 0x00000020
    MOVED_FROM = 0x00000040
    MOVED_TO = 0x00000080
    CREATE = 0x00000100
    DELETE = 0x00000200
    DELETE_SELF = 0x00000400
    MOVE_SELF = 0x00000800

    ALL_EVENTS = 0x00000FFF

    @classmethod
    def parse(cls, text: str | None) -> "EventMask":
        """Map a single kind name to its bit.

        Matching is case-insensitive. Unrecognized names (inotifywait also
        reports helper names such as ISDIR or CLOSE) map to the empty mask.

        Args:
            text: Kind name, e.g. "create" or "CLOSE_WRITE"

        Returns:
            The matching single-bit mask, or EventMask(0)
        """
        if not text:
            return cls(0)
        return _KINDS_BY_NAME.get(text.strip().strip('"').upper(), cls(0))

    @classmethod
    def parse_list(cls, text: str | None) -> "EventMask":
        """Union the bits of a comma-separated (optionally quoted) name list.

        Returns the empty mask when no name is recognized.
        """
        mask = cls(0)
        if not text:
            return mask
        for name in text.replace('"', "").split(","):
            mask |= cls.parse(name)
        return mask

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "EventMask":
        """Build a mask from configuration names, failing on unknown ones.

        Unlike parse(), this is strict: a typo in a config file should not
        silently turn into an empty watch. "ALL" selects every kind.

        Raises:
            ValueError: If a name is not a known event kind
        """
        mask = cls(0)
        for name in names:
            key = name.strip().upper()
            if key in ("ALL", "ALL_EVENTS"):
                mask |= cls.ALL_EVENTS
            elif key in _KINDS_BY_NAME:
                mask |= _KINDS_BY_NAME[key]
            else:
                valid = ", ".join(_KINDS_BY_NAME)
                raise ValueError(f"Unknown event kind '{name}'. Valid kinds: ALL, {valid}")
        return mask

    def names(self) -> list[str]:
        """Names of the single kinds set in this mask, in bit order."""
        return [kind.name for kind in EVENT_KINDS if kind & self]

    def describe(self, separator: str = "|") -> str:
        """Render the mask for display, e.g. "CREATE|CLOSE_WRITE"."""
        return separator.join(self.names()) or "NONE"


EVENT_KINDS: tuple[EventMask, ...] = (
    EventMask.ACCESS,
    EventMask.MODIFY,
    EventMask.ATTRIB,
    EventMask.CLOSE_WRITE,
    EventMask.CLOSE_NOWRITE,
    EventMask.OPEN,
    EventMask.MOVED_FROM,
    EventMask.MOVED_TO,
    EventMask.CREATE,
    EventMask.DELETE,
    EventMask.DELETE_SELF,
    EventMask.MOVE_SELF,
)

_KINDS_BY_NAME: dict[str, EventMask] = {kind.name: kind for kind in EVENT_KINDS}


class SourceKind(str, Enum):
    """Which event source a controller drives."""

    NATIVE = "native"
    SHELL = "shell"


@dataclass(frozen=True)
class WatchTarget:
    """The path being observed plus the event mask of interest."""

    path: str
    """Absolute path of the watched file or directory."""

    mask: EventMask = EventMask.ALL_EVENTS
    """Event kinds the handler wants to see."""

    def __post_init__(self) -> None:
        raw = self.path
        # Path("") is indistinguishable from Path("."); pass "." to watch the cwd
        if raw is None or (isinstance(raw, PurePath) and not raw.parts) or not str(raw).strip():
            raise ValueError("Watch path must not be empty")
        object.__setattr__(self, "path", os.path.abspath(os.fspath(self.path)))
        object.__setattr__(self, "mask", EventMask(self.mask))


@dataclass(frozen=True)
class ObservedEvent:
    """One occurrence reported by a source."""

    mask: EventMask
    """Kinds reported for this occurrence. May be empty if none were recognized."""

    directory: str
    """Directory the event happened in (the watched path for native events)."""

    name: str | None = None
    """File name relative to directory; None or "" for self-events."""

    @property
    def resolved_path(self) -> Path | None:
        """directory joined with name, or directory alone for self-events."""
        if not self.directory:
            return None
        if self.name:
            return Path(self.directory) / self.name
        return Path(self.directory)
