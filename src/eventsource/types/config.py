"""Configuration types."""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable

from eventsource.errors import ConfigurationError

DEFAULT_RETRY_MS = 5000


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait when reconnecting after an error.

    The first wait is the stream's ``retry`` interval; each further
    consecutive failure multiplies it by *backoff_multiplier*, up to
    *max_delay* seconds.  *jitter* adds up to that fraction of the wait at
    random (``0`` disables it).
    """

    max_retries: int = 3
    backoff_multiplier: float = 2.0
    max_delay: float = 60.0
    jitter: float = 0.1
    on_retry: Callable[[int, Exception, float], None] | None = field(
        default=None, compare=False, hash=False
    )


@dataclass(frozen=True)
class StreamTimeout:
    """Transport timeouts in seconds.  ``None`` waits forever."""

    connect: float | None = None
    read: float | None = None


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared by :class:`~eventsource.client.Client` and
    :class:`~eventsource.async_client.AsyncClient`."""

    retry: int = DEFAULT_RETRY_MS
    headers: Mapping[str, str] = field(default_factory=dict, hash=False)
    timeout: StreamTimeout = field(default_factory=StreamTimeout)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build a config from ``EVENTSOURCE_*`` environment variables.

        Recognised: ``EVENTSOURCE_RETRY_MS``, ``EVENTSOURCE_CONNECT_TIMEOUT``
        and ``EVENTSOURCE_READ_TIMEOUT``.  Unset variables keep the defaults.
        """
        env = os.environ if environ is None else environ

        retry = DEFAULT_RETRY_MS
        raw_retry = env.get("EVENTSOURCE_RETRY_MS")
        if raw_retry:
            message = f"EVENTSOURCE_RETRY_MS must be a non-negative integer, got {raw_retry!r}"
            if not (raw_retry.isascii() and raw_retry.isdigit()):
                raise ConfigurationError(message)
            try:
                retry = int(raw_retry)
            except ValueError as exc:
                raise ConfigurationError(message, cause=exc) from exc

        timeout = StreamTimeout(
            connect=_env_seconds(env, "EVENTSOURCE_CONNECT_TIMEOUT"),
            read=_env_seconds(env, "EVENTSOURCE_READ_TIMEOUT"),
        )
        return cls(retry=retry, timeout=timeout)


def _env_seconds(env: Mapping[str, str], name: str) -> float | None:
    raw = env.get(name)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", cause=exc) from exc
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {raw!r}")
    return value
