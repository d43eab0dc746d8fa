"""
Connection helpers for the Valkey search engine.

Valkey speaks the Redis protocol, so the adapter talks to it through the
`redis` client. This module turns the loosely formatted URLs users put in
their settings (bare hosts, `host:port`, `valkey://...`) into URLs that
`redis.Redis.from_url` accepts, builds the client, and opens the connection
with a fixed-delay retry loop.
"""

from __future__ import annotations

import time

import redis

from .config import VectorStoreConfig
from .errors import VectorStoreConnectionError
from .logger import log_event

DEFAULT_VALKEY_PORT = 6380

# Schemes the redis client does not understand, mapped to ones it does.
_SCHEME_ALIASES = {
    "valkey": "redis",
    "valkeys": "rediss",
    "http": "redis",
    "https": "rediss",
}
_NATIVE_SCHEMES = {"redis", "rediss", "unix"}


def parse_valkey_url(url: str | None) -> str:
    """
    Normalizes a user-supplied Valkey URL.

    Args:
        url: A full URL, a `host:port` pair or a bare hostname.

    Returns:
        A URL with a scheme understood by `redis.Redis.from_url`.

    Raises:
        ValueError: If the URL is missing, blank, or uses an unknown scheme.

    Example:
        >>> parse_valkey_url("cache.internal")
        'redis://cache.internal:6380'
        >>> parse_valkey_url("valkey://cache.internal:6379/0")
        'redis://cache.internal:6379/0'
    """
    if url is None or not url.strip():
        raise ValueError("Valkey URL is required")

    trimmed = url.strip()
    if "://" not in trimmed:
        return _parse_hostname(trimmed)

    scheme, rest = trimmed.split("://", 1)
    scheme = scheme.lower()
    if scheme in _NATIVE_SCHEMES:
        return f"{scheme}://{rest}"
    if scheme in _SCHEME_ALIASES:
        return f"{_SCHEME_ALIASES[scheme]}://{rest}"
    raise ValueError(f"Unsupported Valkey URL scheme: {scheme}")


def _parse_hostname(hostname: str) -> str:
    if ":" in hostname:
        return f"redis://{hostname}"
    return f"redis://{hostname}:{DEFAULT_VALKEY_PORT}"


def create_client(url: str, password: str | None = None) -> redis.Redis:
    """
    Builds a `redis.Redis` client for an already normalized URL.

    The client connects lazily, so this only fails on malformed input.
    Replies are left as bytes because documents carry binary vectors.

    Raises:
        VectorStoreConnectionError: If the client cannot be constructed.
    """
    redacted = VectorStoreConfig.redact_url(url)
    try:
        return redis.Redis.from_url(url, password=password, decode_responses=False)
    except ValueError as e:
        log_event("ERROR", "valkey_client_failed", valkey_url=redacted, error=str(e))
        raise VectorStoreConnectionError(redacted, str(e)) from e


def connect_with_retry(
    client: redis.Redis,
    url: str,
    retry_delay_ms: int,
    max_attempts: int,
) -> None:
    """
    Opens the connection by pinging until the engine answers.

    Attempts are separated by a fixed delay. `max_attempts` of 0 retries
    forever.

    Args:
        client: The client to connect.
        url: The URL the client points at, used in logs and errors.
        retry_delay_ms: Delay between attempts in milliseconds.
        max_attempts: Total attempts allowed, or 0 for no limit.

    Raises:
        VectorStoreConnectionError: When every allowed attempt failed.
    """
    redacted = VectorStoreConfig.redact_url(url)
    attempt = 0
    while True:
        attempt += 1
        try:
            client.ping()
        except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError) as e:
            if max_attempts and attempt >= max_attempts:
                log_event(
                    "ERROR",
                    "valkey_connect_failed",
                    valkey_url=redacted,
                    attempts=attempt,
                    error=str(e),
                )
                raise VectorStoreConnectionError(redacted, str(e)) from e
            log_event(
                "WARNING",
                "valkey_connect_retry",
                valkey_url=redacted,
                attempt=attempt,
                max_attempts=max_attempts or None,
                retry_delay_ms=retry_delay_ms,
                error=str(e),
            )
            time.sleep(retry_delay_ms / 1000)
            continue
        log_event("INFO", "valkey_connected", valkey_url=redacted, attempts=attempt)
        return
