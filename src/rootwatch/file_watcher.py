"""Native event source using watchdog (inotify on Linux)."""

import logging
import os

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from rootwatch_core.errors import SourceStartError
from rootwatch_core.models import EventMask, ObservedEvent, SourceKind, WatchTarget
from rootwatch_core.watchers import EventCallback

logger = logging.getLogger(__name__)

# watchdog event_type -> inotify kind
EVENT_TYPE_MASKS = {
    "created": EventMask.CREATE,
    "modified": EventMask.MODIFY,
    "deleted": EventMask.DELETE,
    "opened": EventMask.OPEN,
    "closed": EventMask.CLOSE_WRITE,
    "closed_no_write": EventMask.CLOSE_NOWRITE,
}


class _ForwardingHandler(FileSystemEventHandler):
    """Translates watchdog events into ObservedEvents relative to the watched path."""

    def __init__(self, root: str, callback: EventCallback):
        self.root = os.path.normpath(root)
        self.callback = callback

    def _relative(self, path: str | bytes) -> str | None:
        path = os.path.normpath(os.fsdecode(path))
        if path == self.root:
            return None
        return os.path.relpath(path, self.root)

    def _emit(self, mask: EventMask, path: str | bytes) -> None:
        self.callback(ObservedEvent(mask=mask, directory=self.root, name=self._relative(path)))

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle every watchdog event type."""
        if event.event_type == "moved":
            is_self = self._relative(event.src_path) is None
            self._emit(EventMask.MOVE_SELF if is_self else EventMask.MOVED_FROM, event.src_path)
            if not is_self and getattr(event, "dest_path", ""):
                self._emit(EventMask.MOVED_TO, event.dest_path)
            return

        mask = EVENT_TYPE_MASKS.get(event.event_type)
        if mask is None:
            logger.debug(f"Ignoring unsupported watchdog event: {event.event_type}")
            return

        # watchdog synthesizes directory-modified events for child changes
        if mask == EventMask.MODIFY and event.is_directory:
            return

        if mask == EventMask.DELETE and self._relative(event.src_path) is None:
            mask = EventMask.DELETE_SELF

        self._emit(mask, event.src_path)


class NativeWatchSource:
    """Watches a path with the OS notification facility via watchdog.

    Events are delivered on watchdog's emitter thread. The watched entry must
    exist when start() is called; entries created afterwards are never picked up.
    """

    kind = SourceKind.NATIVE

    def __init__(self, target: WatchTarget, callback: EventCallback):
        """Initialize source.

        Args:
            target: Path and mask to watch
            callback: Receives every translated event
        """
        self.target = target
        self.callback = callback
        self.observer: Observer | None = None

    @property
    def is_running(self) -> bool:
        return self.observer is not None and self.observer.is_alive()

    def start(self) -> None:
        """Start the observer.

        Raises:
            SourceStartError: If the watch cannot be established
        """
        if self.observer is not None:
            return

        path = self.target.path
        if not os.path.exists(path):
            logger.warning(f"Watch path does not exist, no events will be reported: {path}")
            return

        observer = Observer()
        handler = _ForwardingHandler(path, self.callback)
        try:
            observer.schedule(handler, path, recursive=os.path.isdir(path))
            observer.start()
        except OSError as e:
            raise SourceStartError(f"Failed to watch {path}: {e}") from e

        self.observer = observer
        logger.info(f"Watching {path} natively")

    def stop(self) -> None:
        """Stop the observer. Events already emitted may still be dispatched."""
        observer, self.observer = self.observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=2.0)
        logger.info(f"Stopped watching {self.target.path}")
