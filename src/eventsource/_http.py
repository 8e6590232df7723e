"""HTTP transport wrappers around httpx."""
from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Generator, Mapping

import httpx

from eventsource._sse import LineDecoder
from eventsource.errors import (
    HTTPStatusError,
    NetworkError,
    RequestTimeoutError,
    StreamError,
    error_from_status_code,
    parse_retry_after,
)
from eventsource.types.config import StreamTimeout

logger = logging.getLogger(__name__)

_STREAM_HEADERS = {
    "Accept": "text/event-stream",
    "Cache-Control": "no-cache",
}


def _httpx_timeout(timeout: StreamTimeout | None) -> httpx.Timeout:
    t = timeout or StreamTimeout()
    return httpx.Timeout(None, connect=t.connect, read=t.read)


def _request_headers(
    base: Mapping[str, str], extra: Mapping[str, str] | None
) -> dict[str, str]:
    headers = dict(_STREAM_HEADERS)
    headers.update(base)
    if extra:
        headers.update(extra)
    return headers


def _status_error(response: httpx.Response) -> HTTPStatusError:
    return error_from_status_code(
        response.status_code,
        f"HTTP {response.status_code} {response.reason_phrase} from {response.request.url}",
        retry_after=parse_retry_after(response.headers.get("retry-after")),
    )


class HttpClient:
    """Thin wrapper around :class:`httpx.Client` that opens event streams.

    Maps httpx failures into eventsource exceptions.  A client passed in as
    *http_client* is borrowed and never closed here.
    """

    def __init__(
        self,
        headers: Mapping[str, str] | None = None,
        timeout: StreamTimeout | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._headers = dict(headers or {})
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            timeout=_httpx_timeout(timeout),
            follow_redirects=True,
        )

    def open_stream(
        self, url: str, extra_headers: Mapping[str, str] | None = None
    ) -> httpx.Response:
        """Send a streaming GET and return the open response.

        Raises :class:`~eventsource.errors.HTTPStatusError` on a non-2xx
        status, after closing the response.
        """
        request = self._client.build_request(
            "GET", url, headers=_request_headers(self._headers, extra_headers)
        )
        logger.debug("GET %s", url)
        try:
            response = self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(str(exc), cause=exc) from exc
        except httpx.RequestError as exc:
            raise NetworkError(str(exc), cause=exc) from exc

        if not response.is_success:
            response.close()
            raise _status_error(response)
        return response

    def iter_lines(self, response: httpx.Response) -> Generator[str, None, None]:
        """Yield decoded lines from an open response body."""
        decoder = LineDecoder()
        try:
            for chunk in response.iter_bytes():
                yield from decoder.decode(chunk)
            yield from decoder.flush()
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(str(exc), cause=exc) from exc
        except httpx.RequestError as exc:
            raise StreamError(str(exc), cause=exc) from exc
        except UnicodeDecodeError as exc:
            raise StreamError(f"Stream is not valid UTF-8: {exc}", cause=exc) from exc

    def close(self) -> None:
        """Close the underlying httpx client if this wrapper created it."""
        if self._owns_client:
            self._client.close()


class AsyncHttpClient:
    """Async counterpart of :class:`HttpClient`."""

    def __init__(
        self,
        headers: Mapping[str, str] | None = None,
        timeout: StreamTimeout | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._headers = dict(headers or {})
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=_httpx_timeout(timeout),
            follow_redirects=True,
        )

    async def open_stream(
        self, url: str, extra_headers: Mapping[str, str] | None = None
    ) -> httpx.Response:
        request = self._client.build_request(
            "GET", url, headers=_request_headers(self._headers, extra_headers)
        )
        logger.debug("GET %s", url)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(str(exc), cause=exc) from exc
        except httpx.RequestError as exc:
            raise NetworkError(str(exc), cause=exc) from exc

        if not response.is_success:
            await response.aclose()
            raise _status_error(response)
        return response

    async def iter_lines(self, response: httpx.Response) -> AsyncGenerator[str, None]:
        decoder = LineDecoder()
        try:
            async for chunk in response.aiter_bytes():
                for line in decoder.decode(chunk):
                    yield line
            for line in decoder.flush():
                yield line
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(str(exc), cause=exc) from exc
        except httpx.RequestError as exc:
            raise StreamError(str(exc), cause=exc) from exc
        except UnicodeDecodeError as exc:
            raise StreamError(f"Stream is not valid UTF-8: {exc}", cause=exc) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
