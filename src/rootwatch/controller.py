"""Watcher controller. Primary embed point."""

import asyncio
import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from rootwatch_core.binaries import ArchitectureBinaryResolver
from rootwatch_core.elevation import Elevator, SudoElevator
from rootwatch_core.models import EventMask, ObservedEvent, SourceKind, WatchTarget
from rootwatch_core.notifier import NoOpNotifier, Notifier
from rootwatch_core.watchers import WatchSource

from rootwatch.dispatch import Dispatcher, LoopDispatcher, ThreadDispatcher
from rootwatch.file_watcher import NativeWatchSource
from rootwatch.shell_watcher import ShellWatchSource

logger = logging.getLogger(__name__)

EventHandler = Callable[[EventMask, Path], None]


class WatcherController:
    """Watches one path and reports events to a handler, with or without read access.

    The source is chosen once, at construction: if the process can read the
    path it is watched natively, otherwise (and only if elevation is
    available) through inotifywait in an elevated shell.

    The handler always runs on the dispatcher, never on a source thread, so
    it is never called concurrently with itself and sees events in the order
    the source produced them.

    Usage:
        controller = WatcherController("/data/app", on_event, dispatcher=loop)
        controller.start_watching()
        ...
        controller.stop_watching()
    """

    def __init__(
        self,
        path: str | Path,
        on_event: EventHandler,
        mask: EventMask = EventMask.ALL_EVENTS,
        dispatcher: Dispatcher | asyncio.AbstractEventLoop | None = None,
        elevator: Elevator | None = None,
        resolver: ArchitectureBinaryResolver | None = None,
        notifier: Notifier | None = None,
    ):
        """Initialize controller.

        Args:
            path: File or directory to watch
            on_event: Handler called with (mask, resolved path) per event
            mask: Event kinds of interest
            dispatcher: Where the handler runs. An event loop is wrapped in a
                LoopDispatcher; None creates a private ThreadDispatcher.
            elevator: Elevated shell provider (defaults to SudoElevator)
            resolver: inotifywait locator (defaults to ArchitectureBinaryResolver())
            notifier: Diagnostics sink (defaults to NoOpNotifier - silent)

        Raises:
            ValueError: If path is empty
        """
        self.target = WatchTarget(path=path, mask=mask)
        self.on_event = on_event
        self.elevator = elevator or SudoElevator()
        self.resolver = resolver or ArchitectureBinaryResolver()
        self.notifier = notifier or NoOpNotifier()

        self._owns_dispatcher = dispatcher is None
        if dispatcher is None:
            self.dispatcher: Dispatcher = ThreadDispatcher()
        elif isinstance(dispatcher, asyncio.AbstractEventLoop):
            self.dispatcher = LoopDispatcher(dispatcher)
        else:
            self.dispatcher = dispatcher

        self.source_kind = self._select_source()
        self._source: WatchSource | None = None
        self._watching = False
        self._lock = threading.Lock()

    def _select_source(self) -> SourceKind:
        if os.access(self.target.path, os.R_OK):
            return SourceKind.NATIVE
        if self.elevator.is_available():
            logger.debug(f"{self.target.path} is not readable, using elevated shell")
            return SourceKind.SHELL
        logger.debug(f"{self.target.path} is not readable and elevation is unavailable")
        return SourceKind.NATIVE

    @property
    def path(self) -> Path:
        return Path(self.target.path)

    @property
    def source(self) -> WatchSource | None:
        """The active source, if watching."""
        return self._source

    def is_watching(self) -> bool:
        """Last requested state. Not a health check of the source."""
        return self._watching

    def _create_source(self) -> WatchSource:
        if self.source_kind == SourceKind.SHELL:
            return ShellWatchSource(
                self.target,
                self._on_source_event,
                elevator=self.elevator,
                resolver=self.resolver,
                notifier=self.notifier,
            )
        return NativeWatchSource(self.target, self._on_source_event)

    def start_watching(self) -> None:
        """Start watching. No effect if already watching.

        The path must exist now; if it appears later, nothing is reported.

        Raises:
            SourceStartError: If the source cannot be started
        """
        with self._lock:
            if self._watching:
                return
            self._watching = True
            source = self._create_source()
            try:
                source.start()
            except Exception:
                self._watching = False
                raise
            self._source = source
        logger.debug(f"Started {self.source_kind.value} watch on {self.target.path}")

    def stop_watching(self) -> None:
        """Stop watching. No effect if not watching.

        Events already produced may still reach the handler after this returns.
        """
        with self._lock:
            if not self._watching:
                return
            self._watching = False
            source, self._source = self._source, None
            if source is not None:
                source.stop()
        logger.debug(f"Stopped {self.source_kind.value} watch on {self.target.path}")

    def close(self) -> None:
        """Stop watching and release an owned dispatcher."""
        self.stop_watching()
        if self._owns_dispatcher and isinstance(self.dispatcher, ThreadDispatcher):
            self.dispatcher.close()

    def __enter__(self) -> "WatcherController":
        self.start_watching()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_source_event(self, event: ObservedEvent) -> None:
        """Normalize a raw event from a source thread and hand it to the dispatcher."""
        path = event.resolved_path
        if path is None:
            logger.debug(f"Dropped event without a path: {event}")
            return

        mask = EventMask(event.mask & self.target.mask)
        if not mask:
            logger.debug(f"No actionable event kinds in {event.mask.describe()} for {path}")
            return

        self.dispatcher.submit(lambda: self._deliver(mask, path))

    def _deliver(self, mask: EventMask, path: Path) -> None:
        try:
            self.on_event(mask, path)
        except Exception as e:
            logger.exception(f"Error in event handler for {path}: {e}")
            self.notifier.error(f"Event handler failed for {path}: {e}")
