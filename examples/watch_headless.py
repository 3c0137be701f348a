#!/usr/bin/env python3
"""
Example: Embedding WatcherController in an asyncio application.

This example demonstrates:
- Handing events to the application's event loop
- Watching a path the process may not be able to read
- Reporting diagnostics through a notifier
- Stopping cleanly on Ctrl+C
"""

import asyncio
import sys
from pathlib import Path

try:
    from rootwatch import EventMask, WatcherController
    from rootwatch_core import LoggingNotifier, SourceStartError
except ImportError:
    print("Error: Install rootwatch first: pip install -e .")
    exit(1)


class ChangeLog:
    """Collects events delivered on the event loop."""

    def __init__(self):
        self.count = 0

    def on_event(self, mask: EventMask, path: Path) -> None:
        self.count += 1
        print(f"[{self.count}] {mask.describe()} {path}")


async def main(path: str) -> None:
    loop = asyncio.get_running_loop()
    log = ChangeLog()

    controller = WatcherController(
        path,
        log.on_event,
        mask=EventMask.CREATE | EventMask.DELETE | EventMask.CLOSE_WRITE | EventMask.MOVED_TO,
        dispatcher=loop,
        notifier=LoggingNotifier(),
    )
    print(f"Watching {controller.path} using the {controller.source_kind.value} source")

    try:
        controller.start_watching()
    except SourceStartError as e:
        print(f"Cannot watch {path}: {e}")
        return

    try:
        await asyncio.Event().wait()
    finally:
        controller.close()
        print(f"Stopped after {log.count} events")


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else "."
    try:
        asyncio.run(main(target))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
