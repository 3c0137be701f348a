"""CLI entry point for rootwatch: watch paths and print one line per event."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rootwatch_core.binaries import ArchitectureBinaryResolver
from rootwatch_core.config import WatchSettings, load_watch_config
from rootwatch_core.elevation import ELEVATORS, get_elevator
from rootwatch_core.errors import RootwatchError
from rootwatch_core.models import EventMask
from rootwatch_core.notifier import LoggingNotifier
from rootwatch_core.watchers import WatcherConfig

from rootwatch import __version__
from rootwatch.controller import WatcherController

logger = logging.getLogger(__name__)


def format_event(mask: EventMask, path: Path) -> str:
    """Format an event as printed by the CLI, e.g. "CREATE|CLOSE_WRITE /data/app/foo.txt"."""
    return f"{mask.describe()} {path}"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="rootwatch",
        description="Watch files and directories for changes, even without read access.",
        epilog="Examples:\n"
        "  rootwatch /data/app                      # All events under /data/app\n"
        "  rootwatch /data/app -e create,delete     # Only creations and deletions\n"
        "  rootwatch --config watch.toml            # Paths from a config file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("paths", nargs="*", help="Files or directories to watch")

    parser.add_argument(
        "-e",
        "--events",
        default="ALL",
        help="Comma-separated event kinds for PATHS (default: ALL)",
    )

    parser.add_argument("-c", "--config", help="Path to TOML config file")

    parser.add_argument(
        "--elevation",
        choices=sorted(ELEVATORS),
        help="Elevation method for unreadable paths (default: sudo, or the config's)",
    )

    parser.add_argument("--binary", help="Path to the inotifywait binary")

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)
    if not args.paths and not args.config:
        parser.error("nothing to watch: give at least one PATH or --config")
    return args


def build_settings(args: argparse.Namespace) -> WatchSettings:
    """Merge the config file (if any) with command-line paths and overrides.

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the config or the event list is invalid
    """
    settings = load_watch_config(args.config) if args.config else WatchSettings()

    mask = EventMask.from_names(args.events.split(","))
    settings.watches.extend(WatcherConfig(path=Path(p).absolute(), mask=mask) for p in args.paths)

    if args.elevation:
        settings.elevation = args.elevation
    if args.binary:
        settings.binary.path = Path(args.binary)
    return settings


def print_event(mask: EventMask, path: Path) -> None:
    print(format_event(mask, path), flush=True)


async def run(settings: WatchSettings, stop: asyncio.Event | None = None) -> None:
    """Watch every configured path until stop is set (or forever).

    Raises:
        SourceStartError: If any watch fails to start
    """
    loop = asyncio.get_running_loop()
    stop = stop or asyncio.Event()
    elevator = get_elevator(settings.elevation)
    resolver = ArchitectureBinaryResolver(settings.binary)
    notifier = LoggingNotifier()

    controllers = [
        WatcherController(
            config.path,
            print_event,
            mask=config.mask,
            dispatcher=loop,
            elevator=elevator,
            resolver=resolver,
            notifier=notifier,
        )
        for config in settings.watches
    ]

    try:
        for controller in controllers:
            controller.start_watching()
            logger.info(f"Watching {controller.path} ({controller.source_kind.value})")
        await stop.wait()
    finally:
        for controller in controllers:
            controller.close()


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the rootwatch CLI.

    Handles:
    - Argument parsing
    - Logging setup
    - Running the watchers until interrupted
    - Error handling and exit codes
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.verbose:
        logging.getLogger("rootwatch").setLevel(logging.DEBUG)
        logging.getLogger("rootwatch_core").setLevel(logging.DEBUG)

    try:
        settings = build_settings(args)
        if not settings.watches:
            print("Error: No paths to watch", file=sys.stderr)
            sys.exit(1)
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        # Gracefully handle Ctrl+C
        sys.exit(130)
    except (FileNotFoundError, ValueError, RootwatchError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
