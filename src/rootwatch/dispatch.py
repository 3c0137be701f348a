"""Execution contexts that run event handlers.

Sources produce events on their own threads. A dispatcher moves each
handler call onto one designated context so that a handler never runs
concurrently with itself and sees events in the order they were produced.
"""

import asyncio
import logging
import queue
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    """Protocol for a serial, FIFO execution context."""

    def submit(self, fn: Callable[[], None]) -> None:
        """Schedule fn to run on the context. Must be safe to call from any thread."""
        ...


class LoopDispatcher:
    """Runs callables on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.loop = loop

    def submit(self, fn: Callable[[], None]) -> None:
        try:
            self.loop.call_soon_threadsafe(fn)
        except RuntimeError as e:
            # Loop closed: the host has shut down, drop the tail of events
            logger.debug(f"Dropped event, event loop unavailable: {e}")


class ThreadDispatcher:
    """Runs callables one at a time on a dedicated worker thread."""

    def __init__(self, name: str = "rootwatch-dispatch"):
        self._queue: queue.Queue[Callable[[], None] | None] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def submit(self, fn: Callable[[], None]) -> None:
        if self._closed:
            logger.debug("Dropped event, dispatcher closed")
            return
        self._queue.put(fn)

    def close(self, timeout: float = 2.0) -> None:
        """Run what is already queued, then stop the worker thread."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=timeout)

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while True:
            fn = self._queue.get()
            if fn is None:
                break
            try:
                fn()
            except Exception as e:
                logger.exception(f"Error in dispatched callable: {e}")
