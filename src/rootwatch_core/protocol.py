"""Parser for the CSV event lines printed by ``inotifywait -c``.

Each event is one line of three fields::

    /data/app/,"CREATE,CLOSE_WRITE",foo.txt

Fields containing commas are quoted, so the split only happens on commas
that sit outside a quoted span. The third field is empty for events on the
watched entry itself (DELETE_SELF, MOVE_SELF).
"""

import logging
import re

from rootwatch_core.errors import ProtocolError
from rootwatch_core.models import EventMask, ObservedEvent

logger = logging.getLogger(__name__)

# A comma followed by an even number of quotes up to end of line is outside quotes.
CSV_SPLIT = re.compile(r',(?=(?:[^"]*"[^"]*")*[^"]*$)')

FIELD_COUNT = 3


def split_fields(line: str) -> list[str]:
    """Split a line on unquoted commas and drop the quote characters."""
    return [field.replace('"', "") for field in CSV_SPLIT.split(line)]


def parse_line(line: str | None) -> ObservedEvent:
    """Turn one line of inotifywait output into an ObservedEvent.

    Event-kind recognition and line validity are separate: a well-formed
    line whose kinds are all unknown still yields an event with an empty mask.

    Args:
        line: Raw stdout line, with or without its trailing newline

    Returns:
        The parsed event

    Raises:
        ProtocolError: If line is None or does not have exactly three fields
    """
    if line is None:
        raise ProtocolError("Cannot parse a null line")

    text = line.rstrip("\r\n")
    fields = split_fields(text)
    if len(fields) != FIELD_COUNT:
        raise ProtocolError(
            f"Expected {FIELD_COUNT} fields, got {len(fields)}", line=text
        )

    directory, events, name = fields
    return ObservedEvent(
        mask=EventMask.parse_list(events),
        directory=directory,
        name=name or None,
    )


class LineProtocolParser:
    """Stateful wrapper around parse_line that counts outcomes."""

    def __init__(self):
        self.parsed = 0
        self.rejected = 0

    def parse(self, line: str | None) -> ObservedEvent:
        """Parse a line, updating counters. Raises ProtocolError like parse_line."""
        try:
            event = parse_line(line)
        except ProtocolError:
            self.rejected += 1
            raise
        self.parsed += 1
        return event

    def try_parse(self, line: str | None) -> ObservedEvent | None:
        """Parse a line, returning None instead of raising on malformed input."""
        try:
            return self.parse(line)
        except ProtocolError as e:
            logger.debug(f"Failed parsing output from inotifywait ({e}). line: {line!r}")
            return None
