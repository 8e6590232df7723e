"""Asyncio SSE client with a cancellable reconnection delay."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Mapping
from typing import Any

import httpx

from eventsource._http import AsyncHttpClient
from eventsource._sse import ParseResult, StreamState, parse_line
from eventsource.errors import HTTPStatusError, SSEError
from eventsource.types.config import ClientConfig, StreamTimeout
from eventsource.types.event import Event, PendingEvent

logger = logging.getLogger(__name__)


class AsyncClient:
    """Async counterpart of :class:`eventsource.client.Client`.

    Behaves identically except that waiting between reconnects uses
    :func:`asyncio.sleep`, so cancelling the consuming task interrupts it.
    """

    def __init__(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        retry: int | None = None,
        timeout: StreamTimeout | None = None,
        last_event_id: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        cfg = config or ClientConfig()
        self.url = url
        self._state = StreamState(
            last_event_id=last_event_id,
            retry=cfg.retry if retry is None else retry,
        )
        self._http = AsyncHttpClient(
            headers={**cfg.headers, **(headers or {})},
            timeout=timeout or cfg.timeout,
            http_client=http_client,
        )
        self._response: httpx.Response | None = None
        self._lines: AsyncGenerator[str, None] | None = None

    @property
    def last_event_id(self) -> str | None:
        return self._state.last_event_id

    @property
    def retry(self) -> int:
        return self._state.retry

    @property
    def connected(self) -> bool:
        return self._response is not None

    async def next_event(self) -> Event:
        while True:
            if self._lines is None:
                await self._connect()
            event = await self._read_event()
            if event is not None:
                return event

            await self._disconnect()
            delay = self._state.reconnect_delay()
            logger.info("Stream %s ended; reconnecting in %.3fs", self.url, delay)
            await asyncio.sleep(delay)

    def __aiter__(self) -> AsyncIterator[Event]:
        return self

    async def __anext__(self) -> Event:
        return await self.next_event()

    async def _connect(self) -> None:
        headers: dict[str, str] = {}
        if self._state.last_event_id is not None:
            headers["Last-Event-ID"] = self._state.last_event_id

        try:
            response = await self._http.open_stream(self.url, headers)
        except HTTPStatusError as exc:
            logger.warning("Stream %s rejected with HTTP %d", self.url, exc.status_code)
            raise

        logger.debug(
            "Connected to %s (Last-Event-ID=%r)", self.url, self._state.last_event_id
        )
        self._response = response
        self._lines = self._http.iter_lines(response)

    async def _read_event(self) -> Event | None:
        assert self._lines is not None
        pending = PendingEvent()
        try:
            async for line in self._lines:
                if parse_line(line, pending, self._state) is ParseResult.DISPATCH:
                    return pending.freeze()
        except SSEError as exc:
            logger.warning("Error reading stream %s: %s", self.url, exc)
            await self._disconnect()
            raise
        return None

    async def _disconnect(self) -> None:
        response, self._response = self._response, None
        lines, self._lines = self._lines, None
        if lines is not None:
            await lines.aclose()
        if response is not None:
            await response.aclose()

    async def aclose(self) -> None:
        await self._disconnect()
        await self._http.aclose()

    async def __aenter__(self) -> AsyncClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
