"""Server-Sent Events line parser."""
from __future__ import annotations

import codecs
import enum
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from eventsource.types.config import DEFAULT_RETRY_MS
from eventsource.types.event import Event, PendingEvent

# Largest retry interval accepted from a stream (unsigned 64-bit milliseconds).
MAX_RETRY_MS = 2**64 - 1
_MAX_RETRY_DIGITS = len(str(MAX_RETRY_MS))


class LineDecoder:
    """Incrementally decode a UTF-8 byte stream into lines.

    Lines end at ``\\n`` only and the terminator is removed.  A ``\\r`` is
    ordinary content and stays in the line.  Invalid UTF-8 raises
    :class:`UnicodeDecodeError`.
    """

    def __init__(self) -> None:
        self._text = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def decode(self, data: bytes) -> list[str]:
        self._buffer += self._text.decode(data)
        *lines, self._buffer = self._buffer.split("\n")
        return lines

    def flush(self) -> list[str]:
        """Return the unterminated last line, if any, once the stream has ended."""
        buffer = self._buffer + self._text.decode(b"", final=True)
        self._buffer = ""
        return [buffer] if buffer else []


class ParseResult(enum.Enum):
    """What the caller should do after a line has been parsed."""

    CONTINUE = "continue"
    DISPATCH = "dispatch"


@dataclass
class StreamState:
    """Per-stream fields that outlive a single event.

    ``last_event_id`` is sent back as ``Last-Event-ID`` when reconnecting and
    ``retry`` is the reconnection delay in milliseconds.
    """

    last_event_id: str | None = None
    retry: int = DEFAULT_RETRY_MS

    def reconnect_delay(self) -> float:
        """The retry interval in seconds, capped at what a sleep call accepts."""
        return min(self.retry / 1000, threading.TIMEOUT_MAX)


def parse_line(line: str, event: PendingEvent, state: StreamState) -> ParseResult:
    """Apply one line of an event stream to *event* and *state*.

    Follows the SSE field grammar:

    - A blank line dispatches the pending event.
    - ``event`` sets the event type, ``data`` appends to the data buffer,
      ``id`` sets the event id and the stream's last event id, and ``retry``
      updates the reconnection delay when it is a non-negative integer no
      larger than :data:`MAX_RETRY_MS`.
    - At most one space after the colon is stripped from the value.
    - Unknown fields and comment lines (``:`` prefix) are ignored.
    """
    if line.endswith("\n"):
        line = line[:-1]

    if line == "":
        return ParseResult.DISPATCH

    if ":" in line:
        field_name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
    else:
        field_name = line
        value = ""

    if field_name == "event":
        event.event_type = value
    elif field_name == "data":
        event.data += value + "\n"
    elif field_name == "id":
        event.id = value
        state.last_event_id = value
    elif field_name == "retry":
        if value.isascii() and value.isdigit():
            digits = value.lstrip("0") or "0"
            if len(digits) <= _MAX_RETRY_DIGITS and int(digits) <= MAX_RETRY_MS:
                state.retry = int(digits)

    return ParseResult.CONTINUE


def parse_sse_lines(
    lines: Iterable[str], state: StreamState | None = None
) -> Iterator[Event]:
    """Parse raw SSE text lines into dispatched events.

    A partial event left over when *lines* runs out is discarded, the same
    way the client drops it on disconnect.
    """
    state = state if state is not None else StreamState()
    pending = PendingEvent()

    for line in lines:
        if parse_line(line, pending, state) is ParseResult.DISPATCH:
            yield pending.freeze()
            pending = PendingEvent()
