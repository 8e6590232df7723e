"""Error hierarchy for the eventsource client."""
from __future__ import annotations


class SSEError(Exception):
    """Base error for all eventsource errors."""

    retryable: bool = False

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class HTTPStatusError(SSEError):
    """The server answered the stream request with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        retryable: bool = False,
        retry_after: float | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


class NetworkError(SSEError):
    """The connection to the server could not be established."""

    retryable = True


class RequestTimeoutError(SSEError):
    """Connecting to or reading from the server timed out."""

    retryable = True


class StreamError(SSEError):
    """An I/O error occurred while reading an open event stream."""

    retryable = True


class ConfigurationError(SSEError):
    """Invalid client configuration."""


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------


def error_from_status_code(
    status_code: int,
    message: str,
    *,
    retry_after: float | None = None,
) -> HTTPStatusError:
    """Map an HTTP status code to an :class:`HTTPStatusError`.

    Timeouts (408), rate limiting (429) and server errors (5xx) are marked
    retryable.  Everything else is treated as permanent.
    """
    retryable = status_code in (408, 429) or 500 <= status_code <= 599
    return HTTPStatusError(
        message,
        status_code=status_code,
        retryable=retryable,
        retry_after=retry_after,
    )


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header given in seconds."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None
