"""Exception types raised by rootwatch."""


class RootwatchError(Exception):
    """Base class for rootwatch errors."""


class SourceStartError(RootwatchError, RuntimeError):
    """An event source could not be established."""


class BinaryNotFoundError(RootwatchError, FileNotFoundError):
    """No runnable inotifywait binary could be found or provisioned."""


class ProtocolError(RootwatchError, ValueError):
    """A line of inotifywait output could not be parsed."""

    def __init__(self, message: str, line: str | None = None):
        super().__init__(message)
        self.line = line
