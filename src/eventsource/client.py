"""Blocking SSE client with transparent reconnection."""
from __future__ import annotations

import logging
import time
from collections.abc import Generator, Iterator, Mapping
from typing import Any

import httpx

from eventsource._http import HttpClient
from eventsource._sse import ParseResult, StreamState, parse_line
from eventsource.errors import HTTPStatusError, SSEError
from eventsource.types.config import ClientConfig, StreamTimeout
from eventsource.types.event import Event, PendingEvent

logger = logging.getLogger(__name__)


class Client:
    """Pull-based reader for a ``text/event-stream`` URL.

    No connection is made until the first call to :meth:`next_event` (or the
    first iteration step).  When the server closes the stream cleanly the
    client waits for the current retry interval and reconnects, sending the
    last seen event id as ``Last-Event-ID``.  Non-success statuses and I/O
    failures are raised to the caller instead; calling :meth:`next_event`
    again after such an error opens a fresh connection.
    """

    def __init__(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
        timeout: StreamTimeout | None = None,
        last_event_id: str | None = None,
        http_client: httpx.Client | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        cfg = config or ClientConfig()
        self.url = url
        self._state = StreamState(
            last_event_id=last_event_id,
            retry=cfg.retry if retry is None else retry,
        )
        self._http = HttpClient(
            headers={**cfg.headers, **(headers or {})},
            timeout=timeout or cfg.timeout,
            http_client=http_client,
        )
        self._response: httpx.Response | None = None
        self._lines: Generator[str, None, None] | None = None

    @classmethod
    def from_env(
        cls,
        url: str,
        *,
        environ: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> Client:
        """Create a client configured from ``EVENTSOURCE_*`` variables."""
        return cls(url, config=ClientConfig.from_env(environ), **kwargs)

    @property
    def last_event_id(self) -> str | None:
        return self._state.last_event_id

    @property
    def retry(self) -> int:
        """Current reconnection delay in milliseconds."""
        return self._state.retry

    @property
    def connected(self) -> bool:
        return self._response is not None

    # -- iteration -----------------------------------------------------------

    def next_event(self) -> Event:
        """Block until the next event is dispatched and return it."""
        while True:
            if self._lines is None:
                self._connect()
            event = self._read_event()
            if event is not None:
                return event

            self._disconnect()
            delay = self._state.reconnect_delay()
            logger.info("Stream %s ended; reconnecting in %.3fs", self.url, delay)
            time.sleep(delay)

    def __iter__(self) -> Iterator[Event]:
        return self

    def __next__(self) -> Event:
        return self.next_event()

    # -- connection lifecycle ------------------------------------------------

    def _connect(self) -> None:
        headers: dict[str, str] = {}
        if self._state.last_event_id is not None:
            headers["Last-Event-ID"] = self._state.last_event_id

        try:
            response = self._http.open_stream(self.url, headers)
        except HTTPStatusError as exc:
            logger.warning("Stream %s rejected with HTTP %d", self.url, exc.status_code)
            raise

        logger.debug(
            "Connected to %s (Last-Event-ID=%r)", self.url, self._state.last_event_id
        )
        self._response = response
        self._lines = self._http.iter_lines(response)

    def _read_event(self) -> Event | None:
        """Read lines until an event is dispatched; ``None`` means EOF."""
        assert self._lines is not None
        pending = PendingEvent()
        try:
            for line in self._lines:
                if parse_line(line, pending, self._state) is ParseResult.DISPATCH:
                    return pending.freeze()
        except SSEError as exc:
            logger.warning("Error reading stream %s: %s", self.url, exc)
            self._disconnect()
            raise
        return None

    def _disconnect(self) -> None:
        response, self._response = self._response, None
        lines, self._lines = self._lines, None
        if lines is not None:
            lines.close()
        if response is not None:
            response.close()

    def close(self) -> None:
        """Drop the open stream and release the HTTP client."""
        self._disconnect()
        self._http.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
