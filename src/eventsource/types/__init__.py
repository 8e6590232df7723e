"""eventsource type definitions."""
from __future__ import annotations

from eventsource.types.event import Event, PendingEvent
from eventsource.types.config import (
    DEFAULT_RETRY_MS,
    ClientConfig,
    RetryPolicy,
    StreamTimeout,
)

__all__ = [
    "DEFAULT_RETRY_MS",
    "ClientConfig",
    "Event",
    "PendingEvent",
    "RetryPolicy",
    "StreamTimeout",
]
