"""Where rootwatch reports problems that do not stop a watch.

Watch sources and the controller never raise for these; they tell the
notifier and carry on:

* warning: an inotifywait output line, or a watch job's exit line, that
  could not be parsed and was skipped.
* error: an inotifywait job or the elevated shell running it exited while
  the watch was still wanted, or the event handler raised.

Info is unused by rootwatch itself and left for hosts that route their own
messages through the same notifier.
"""

import logging
from typing import Protocol

logger = logging.getLogger("rootwatch")


class Notifier(Protocol):
    """Receives rootwatch diagnostics, called from reader or dispatcher threads."""

    def info(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        """A skipped line of watch utility output."""
        ...

    def error(self, message: str) -> None:
        """A watch that ended on its own, or a failing event handler."""
        ...


class NoOpNotifier:
    """Drops every diagnostic. Default for an embedded WatcherController."""

    def info(self, msg: str) -> None:
        pass

    def warning(self, msg: str) -> None:
        pass

    def error(self, msg: str) -> None:
        pass


class LoggingNotifier:
    """Forwards diagnostics to the "rootwatch" logger at matching levels.

    The rootwatch CLI uses this so skipped lines and ended watches show up
    on stderr next to its own log output.
    """

    def info(self, msg: str) -> None:
        logger.info(msg)

    def warning(self, msg: str) -> None:
        logger.warning(msg)

    def error(self, msg: str) -> None:
        logger.error(msg)
