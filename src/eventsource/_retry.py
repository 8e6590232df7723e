"""Reconnecting after the errors a client raises.

The clients reconnect by themselves only after a clean end of stream.  A
refused connection, a retryable status or a broken read is raised instead.
The helpers here reconnect after those too, waiting the server's
``Retry-After`` when it sent one and otherwise the stream's own ``retry``
interval, backed off per consecutive failure.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import TYPE_CHECKING

from eventsource.errors import HTTPStatusError, SSEError
from eventsource.types.config import RetryPolicy

if TYPE_CHECKING:
    from eventsource.async_client import AsyncClient
    from eventsource.client import Client
    from eventsource.types.event import Event

logger = logging.getLogger(__name__)


def error_delay(
    exc: SSEError, attempt: int, retry_ms: int, policy: RetryPolicy
) -> float | None:
    """Seconds to wait before reconnecting after *exc*, or ``None`` to give up.

    *attempt* counts the consecutive failures before this one and *retry_ms*
    is the stream's current reconnection interval.  A ``Retry-After`` longer
    than ``policy.max_delay`` gives up rather than being shortened.
    """
    if attempt >= policy.max_retries or not exc.retryable:
        return None

    if isinstance(exc, HTTPStatusError) and exc.retry_after is not None:
        if exc.retry_after > policy.max_delay:
            return None
        return exc.retry_after

    delay = min(retry_ms / 1000 * policy.backoff_multiplier ** attempt, policy.max_delay)
    if policy.jitter:
        delay += random.uniform(0, delay * policy.jitter)
    return delay


def _log_reconnect(url: str, exc: SSEError, attempt: int, delay: float) -> None:
    logger.info(
        "Reconnecting to %s in %.2fs after %s (attempt %d)", url, delay, exc, attempt + 1
    )


def next_event_with_retry(client: Client, policy: RetryPolicy) -> Event:
    """Return ``client.next_event()``, reconnecting after retryable errors.

    The failure count starts again on every call, so *policy.max_retries*
    bounds consecutive failures rather than failures over the whole stream.
    """
    attempt = 0
    while True:
        try:
            return client.next_event()
        except SSEError as exc:
            delay = error_delay(exc, attempt, client.retry, policy)
            if delay is None:
                raise
            _log_reconnect(client.url, exc, attempt, delay)
            if policy.on_retry is not None:
                policy.on_retry(attempt, exc, delay)
            time.sleep(delay)
            attempt += 1


async def anext_event_with_retry(client: AsyncClient, policy: RetryPolicy) -> Event:
    """Async counterpart of :func:`next_event_with_retry`."""
    attempt = 0
    while True:
        try:
            return await client.next_event()
        except SSEError as exc:
            delay = error_delay(exc, attempt, client.retry, policy)
            if delay is None:
                raise
            _log_reconnect(client.url, exc, attempt, delay)
            if policy.on_retry is not None:
                policy.on_retry(attempt, exc, delay)
            await asyncio.sleep(delay)
            attempt += 1
