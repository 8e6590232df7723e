"""Tests for the blocking SSE client."""
from __future__ import annotations

import threading
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import httpx
import pytest

from eventsource.client import Client
from eventsource.errors import HTTPStatusError, NetworkError, StreamError
from eventsource.types.config import ClientConfig
from eventsource.types.event import Event

URL = "https://events.test/stream"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _BrokenStream(httpx.SyncByteStream):
    def __init__(self, *chunks: bytes) -> None:
        self._chunks = chunks

    def __iter__(self) -> Iterator[bytes]:
        yield from self._chunks
        raise httpx.ReadError("connection reset")


class _Server:
    """Serves a scripted list of responses and records each request."""

    def __init__(self, *responses: httpx.Response) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)

    def client(self, **kwargs) -> Client:
        http_client = httpx.Client(transport=httpx.MockTransport(self))
        return Client(URL, http_client=http_client, **kwargs)


def _ok(body: str) -> httpx.Response:
    return httpx.Response(
        200,
        content=body.encode("utf-8"),
        headers={"content-type": "text/event-stream"},
    )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_lazy_connection(self) -> None:
        server = _Server()
        client = server.client()
        assert server.requests == []
        assert client.connected is False
        assert client.last_event_id is None
        assert client.retry == 5000

    def test_initial_values(self) -> None:
        client = _Server().client(retry=100, last_event_id="abc")
        assert client.retry == 100
        assert client.last_event_id == "abc"

    def test_config_applies_retry_and_headers(self) -> None:
        server = _Server(_ok("data: x\n\n"))
        client = server.client(config=ClientConfig(retry=42, headers={"X-Token": "t"}))
        assert client.retry == 42
        client.next_event()
        assert server.requests[0].headers["x-token"] == "t"

    def test_from_env(self) -> None:
        client = Client.from_env(URL, environ={"EVENTSOURCE_RETRY_MS": "750"})
        assert client.retry == 750
        client.close()


# ---------------------------------------------------------------------------
# Reading events
# ---------------------------------------------------------------------------


class TestNextEvent:
    def test_single_event(self) -> None:
        client = _Server(_ok("id: 1\nevent: greet\ndata: hello\n\n")).client()
        event = client.next_event()
        assert event == Event(id="1", event_type="greet", data="hello\n")
        assert client.connected is True

    def test_multi_line_data(self) -> None:
        client = _Server(_ok("data: a\ndata: b\ndata: c\n\n")).client()
        assert client.next_event().data == "a\nb\nc\n"

    def test_events_share_one_connection(self) -> None:
        server = _Server(_ok("data: first\n\ndata: second\n\n"))
        client = server.client()
        assert client.next_event().data == "first\n"
        assert client.next_event().data == "second\n"
        assert len(server.requests) == 1

    def test_blank_line_dispatches_empty_event(self) -> None:
        client = _Server(_ok("\ndata: x\n\n")).client()
        assert client.next_event() == Event()
        assert client.next_event().data == "x\n"

    def test_unknown_fields_and_comments_ignored(self) -> None:
        client = _Server(_ok(": ping\nfoo: bar\ndata: x\n\n")).client()
        assert client.next_event() == Event(data="x\n")

    def test_carriage_return_kept_in_data(self) -> None:
        client = _Server(_ok("data: a\rb\n\n")).client()
        assert client.next_event().data == "a\rb\n"

    def test_crlf_terminated_fields_keep_carriage_return(self) -> None:
        client = _Server(_ok("id: 3\r\ndata: x\r\n\n")).client()
        assert client.next_event() == Event(id="3\r", data="x\r\n")

    def test_id_updates_last_event_id(self) -> None:
        client = _Server(_ok("id: 10\ndata: a\n\ndata: b\n\n")).client()
        client.next_event()
        second = client.next_event()
        assert second.id is None
        assert client.last_event_id == "10"

    def test_retry_field_updates_interval(self) -> None:
        client = _Server(_ok("retry: 1200\ndata: a\n\n")).client()
        client.next_event()
        assert client.retry == 1200

    def test_invalid_retry_ignored(self) -> None:
        client = _Server(_ok("retry: soon\ndata: a\n\n")).client(retry=300)
        client.next_event()
        assert client.retry == 300

    def test_iterator_protocol(self) -> None:
        client = _Server(_ok("data: 1\n\ndata: 2\n\n")).client()
        it = iter(client)
        assert it is client
        assert [next(it).data, next(it).data] == ["1\n", "2\n"]


# ---------------------------------------------------------------------------
# Reconnection after a clean end of stream
# ---------------------------------------------------------------------------


class TestReconnect:
    @patch("eventsource.client.time.sleep")
    def test_eof_reconnects_after_retry_interval(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("data: a\n\n"), _ok("data: b\n\n"))
        client = server.client(retry=250)
        assert client.next_event().data == "a\n"
        assert client.next_event().data == "b\n"
        mock_sleep.assert_called_once_with(0.25)
        assert len(server.requests) == 2

    @patch("eventsource.client.time.sleep")
    def test_reconnect_sends_last_event_id(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("id: 41\ndata: a\n\n"), _ok("id: 42\ndata: b\n\n"))
        client = server.client()
        client.next_event()
        client.next_event()
        assert "last-event-id" not in server.requests[0].headers
        assert server.requests[1].headers["last-event-id"] == "41"
        assert client.last_event_id == "42"

    @patch("eventsource.client.time.sleep")
    def test_initial_last_event_id_sent_on_first_request(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("data: a\n\n"))
        server.client(last_event_id="start").next_event()
        assert server.requests[0].headers["last-event-id"] == "start"

    @patch("eventsource.client.time.sleep")
    def test_retry_from_stream_used_for_pause(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("retry: 10\ndata: a\n\n"), _ok("data: b\n\n"))
        client = server.client()
        client.next_event()
        client.next_event()
        mock_sleep.assert_called_once_with(0.01)

    @patch("eventsource.client.time.sleep")
    def test_huge_retry_pause_is_capped(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("retry: 100000000000000000\ndata: a\n\n"), _ok("data: b\n\n"))
        client = server.client()
        client.next_event()
        assert client.retry == 100000000000000000
        assert client.next_event().data == "b\n"
        mock_sleep.assert_called_once_with(threading.TIMEOUT_MAX)

    @patch("eventsource.client.time.sleep")
    def test_retry_beyond_u64_ignored(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("retry: 18446744073709551616\ndata: a\n\n"), _ok("data: b\n\n"))
        client = server.client(retry=250)
        client.next_event()
        client.next_event()
        assert client.retry == 250
        mock_sleep.assert_called_once_with(0.25)

    @patch("eventsource.client.time.sleep")
    def test_crlf_blank_line_does_not_dispatch(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("data: x\r\n\r\n"), _ok("data: y\n\n"))
        client = server.client()
        assert client.next_event() == Event(data="y\n")
        mock_sleep.assert_called_once()

    @patch("eventsource.client.time.sleep")
    def test_partial_event_discarded_on_eof(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("id: 5\ndata: partial\n"), _ok("data: whole\n\n"))
        client = server.client()
        event = client.next_event()
        assert event == Event(data="whole\n")
        # the id line of the dropped event was still applied to the stream
        assert server.requests[1].headers["last-event-id"] == "5"

    @patch("eventsource.client.time.sleep")
    def test_empty_streams_keep_reconnecting(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok(""), _ok(""), _ok(""), _ok("data: finally\n\n"))
        client = server.client(retry=1)
        assert client.next_event().data == "finally\n"
        assert mock_sleep.call_count == 3
        assert len(server.requests) == 4

    @patch("eventsource.client.time.sleep")
    def test_failed_status_on_reconnect_is_raised(self, mock_sleep: MagicMock) -> None:
        server = _Server(_ok("id: 1\ndata: a\n\n"), httpx.Response(503))
        client = server.client()
        client.next_event()
        with pytest.raises(HTTPStatusError) as excinfo:
            client.next_event()
        assert excinfo.value.status_code == 503
        assert server.requests[1].headers["last-event-id"] == "1"
        assert client.connected is False
        mock_sleep.assert_called_once()


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    @patch("eventsource.client.time.sleep")
    def test_initial_non_success_status(self, mock_sleep: MagicMock) -> None:
        server = _Server(httpx.Response(401))
        client = server.client()
        with pytest.raises(HTTPStatusError) as excinfo:
            client.next_event()
        assert excinfo.value.status_code == 401
        assert client.connected is False
        mock_sleep.assert_not_called()

    def test_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        client = Client(URL, http_client=httpx.Client(transport=httpx.MockTransport(handler)))
        with pytest.raises(NetworkError):
            client.next_event()
        assert client.connected is False

    @patch("eventsource.client.time.sleep")
    def test_invalid_utf8_surfaces_as_stream_error(self, mock_sleep: MagicMock) -> None:
        server = _Server(
            httpx.Response(200, content=iter([b"data: a\n\n", b"data: \xfe\n\n"])),
            _ok("data: c\n\n"),
        )
        client = server.client()
        assert client.next_event().data == "a\n"
        with pytest.raises(StreamError, match="UTF-8"):
            client.next_event()
        assert client.connected is False
        assert client.next_event().data == "c\n"
        mock_sleep.assert_not_called()

    @patch("eventsource.client.time.sleep")
    def test_read_error_surfaces_without_sleep(self, mock_sleep: MagicMock) -> None:
        server = _Server(
            httpx.Response(200, stream=_BrokenStream(b"data: a\n\ndata: b")),
            _ok("data: c\n\n"),
        )
        client = server.client()
        assert client.next_event().data == "a\n"
        with pytest.raises(StreamError):
            client.next_event()
        assert client.connected is False
        mock_sleep.assert_not_called()

        assert client.next_event().data == "c\n"
        assert len(server.requests) == 2
        mock_sleep.assert_not_called()

    @patch("eventsource.client.time.sleep")
    def test_read_error_keeps_last_event_id(self, mock_sleep: MagicMock) -> None:
        server = _Server(
            httpx.Response(200, stream=_BrokenStream(b"id: 8\ndata: a\n\n")),
            _ok("data: c\n\n"),
        )
        client = server.client()
        client.next_event()
        with pytest.raises(StreamError):
            client.next_event()
        client.next_event()
        assert server.requests[1].headers["last-event-id"] == "8"


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_close_drops_connection(self) -> None:
        client = _Server(_ok("data: a\n\ndata: b\n\n")).client()
        client.next_event()
        client.close()
        assert client.connected is False

    def test_context_manager(self) -> None:
        server = _Server(_ok("data: a\n\n"))
        with server.client() as client:
            assert client.next_event().data == "a\n"
        assert client.connected is False
