"""eventsource: a resumable Server-Sent Events client built on httpx."""
from __future__ import annotations

# Types
from eventsource.types.event import Event, PendingEvent
from eventsource.types.config import (
    DEFAULT_RETRY_MS,
    ClientConfig,
    RetryPolicy,
    StreamTimeout,
)

# Errors
from eventsource.errors import (
    SSEError,
    HTTPStatusError,
    NetworkError,
    RequestTimeoutError,
    StreamError,
    ConfigurationError,
)

# Parser
from eventsource._sse import LineDecoder, ParseResult, StreamState, parse_line, parse_sse_lines

# Clients
from eventsource.client import Client
from eventsource.async_client import AsyncClient

# Retry
from eventsource._retry import anext_event_with_retry, error_delay, next_event_with_retry

__all__ = [
    # Types
    "DEFAULT_RETRY_MS",
    "ClientConfig",
    "Event",
    "PendingEvent",
    "RetryPolicy",
    "StreamTimeout",
    # Errors
    "SSEError",
    "HTTPStatusError",
    "NetworkError",
    "RequestTimeoutError",
    "StreamError",
    "ConfigurationError",
    # Parser
    "LineDecoder",
    "ParseResult",
    "StreamState",
    "parse_line",
    "parse_sse_lines",
    # Clients
    "Client",
    "AsyncClient",
    # Retry
    "anext_event_with_retry",
    "error_delay",
    "next_event_with_retry",
]
