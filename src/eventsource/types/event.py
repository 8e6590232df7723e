"""Event types produced by the SSE parser."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Event:
    """A single dispatched server-sent event.

    ``data`` holds every ``data:`` value received for the event, each one
    followed by a newline.  ``id`` and ``event_type`` are ``None`` unless the
    server sent the corresponding field.
    """

    id: str | None = None
    event_type: str | None = None
    data: str = ""

    def data_lines(self) -> list[str]:
        """Split ``data`` into lines, ignoring a single trailing newline."""
        if not self.data:
            return []
        lines = self.data.split("\n")
        if lines[-1] == "":
            lines.pop()
        return lines

    def to_sse(self) -> str:
        """Render the event back to ``text/event-stream`` wire text.

        The blank line that terminates an event on the wire is not included.
        """
        parts: list[str] = []
        if self.id is not None:
            parts.append(f"id: {self.id}\n")
        if self.event_type is not None:
            parts.append(f"event: {self.event_type}\n")
        for line in self.data_lines():
            parts.append(f"data: {line}\n")
        return "".join(parts)

    def __str__(self) -> str:
        return self.to_sse()


@dataclass
class PendingEvent:
    """Mutable event under construction while lines are being parsed."""

    id: str | None = None
    event_type: str | None = None
    data: str = ""

    def freeze(self) -> Event:
        return Event(id=self.id, event_type=self.event_type, data=self.data)
