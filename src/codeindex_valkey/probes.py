"""
Resilient Readiness Probe for the Valkey Search Engine.

The indexer should only consider its vector store usable when the engine is
reachable *and* has the search module loaded; a plain Valkey without
valkey-search answers PING but rejects every FT.* command. This module
provides that check for readiness endpoints and startup logs.

Core Principles:
- **Resilience to Transient Failures**: failed attempts are retried with a
  jittered exponential backoff, so one dropped packet does not flip readiness.
- **Low Overhead**: results are cached with a dual TTL. Successes are cached
  briefly; failures are cached for a longer cooldown so that a known-down
  engine is not hammered by probes.
- **Structured Logging**: every failed attempt and every readiness evaluation
  is logged as a JSON event.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import Literal, TypedDict

import redis

from .config import get_config
from .connection import parse_valkey_url
from .logger import log_event


class DepProbeResult(TypedDict):
    """
    The result of probing the search engine.

    Attributes:
        ok: Whether the engine answered PING and FT._LIST.
        latency_ms: The time taken by the final attempt.
        attempts: The total number of attempts made.
        reason: A short, machine-readable failure cause.
    """

    ok: bool
    latency_ms: float
    attempts: int
    reason: str | None


class ReadinessResult(TypedDict):
    """The overall readiness response, suitable for JSON serialization."""

    service: str
    env: str
    version: str
    ready: bool
    summary: Literal["ok", "down"]
    deps: dict[str, DepProbeResult]


class ProbeCacheEntry(TypedDict):
    result: DepProbeResult
    expires_at: float


_probe_cache: dict[str, ProbeCacheEntry] = {}

ProbeFn = Callable[[int], tuple[bool, float, str | None]]

_DEP_NAME = "valkey"


def _jittered_backoff(attempt: int, base_ms: int = 100, max_ms: int = 200) -> None:
    """
    Sleeps for an exponentially growing, jittered delay.

    Args:
        attempt: The current retry attempt number (0 for the first retry).
    """
    delay_ms = min(base_ms * (2**attempt), max_ms)
    jitter = random.uniform(0.8, 1.2)
    time.sleep((delay_ms * jitter) / 1000)


def _probe_valkey_once(timeout_ms: int) -> tuple[bool, float, str | None]:
    """Performs a single PING plus FT._LIST against the configured engine."""
    config = get_config()
    start = time.perf_counter()
    try:
        client = redis.Redis.from_url(
            parse_valkey_url(config.valkey_url),
            password=config.valkey_password,
            socket_timeout=timeout_ms / 1000,
            socket_connect_timeout=timeout_ms / 1000,
        )
        try:
            if not client.ping():
                return False, (time.perf_counter() - start) * 1000, "ping_failed"
            client.execute_command("FT._LIST")
        finally:
            client.close()
        return True, (time.perf_counter() - start) * 1000, None
    except redis.exceptions.TimeoutError:
        return False, (time.perf_counter() - start) * 1000, "timeout"
    except redis.exceptions.ResponseError:
        return False, (time.perf_counter() - start) * 1000, "search_module_missing"
    except Exception as e:
        return False, (time.perf_counter() - start) * 1000, f"exception:{type(e).__name__}"


def _probe_with_retry(probe_fn: ProbeFn, timeout_ms: int, retries: int) -> DepProbeResult:
    """
    Runs a single-attempt probe function with retries.

    Args:
        probe_fn: The single-attempt probe.
        timeout_ms: The timeout passed to the probe.
        retries: Retries allowed after the first failed attempt.
    """
    last_error, total_latency = None, 0.0
    for attempt in range(retries + 1):
        success, latency_ms, error = probe_fn(timeout_ms)
        total_latency += latency_ms
        if success:
            return {
                "ok": True,
                "latency_ms": round(latency_ms, 2),
                "attempts": attempt + 1,
                "reason": None,
            }
        last_error = error
        log_event(
            "WARNING",
            "probe_attempt_failed",
            dep=_DEP_NAME,
            attempt=attempt + 1,
            max_attempts=retries + 1,
            elapsed_ms=round(latency_ms, 2),
            reason=error,
        )
        if attempt < retries:
            _jittered_backoff(attempt)
    return {
        "ok": False,
        "latency_ms": round(total_latency / (retries + 1), 2),
        "attempts": retries + 1,
        "reason": last_error,
    }


def _get_cached_probe(dep_name: str) -> DepProbeResult | None:
    entry = _probe_cache.get(dep_name)
    if entry and time.time() < entry["expires_at"]:
        return entry["result"]
    return None


def _cache_probe(dep_name: str, result: DepProbeResult, cache_sec: int, cooldown_sec: int) -> None:
    """Caches successes for `cache_sec` and failures for `cooldown_sec`."""
    ttl = cache_sec if result["ok"] else cooldown_sec
    _probe_cache[dep_name] = {"result": result, "expires_at": time.time() + ttl}


def probe_valkey() -> DepProbeResult:
    """
    Probes the search engine, from cache when a recent result exists.

    Returns:
        The probe result.
    """
    if cached := _get_cached_probe(_DEP_NAME):
        return cached
    config = get_config()
    result = _probe_with_retry(
        probe_fn=_probe_valkey_once,
        timeout_ms=config.probe_timeout_ms,
        retries=config.probe_retries,
    )
    _cache_probe(
        _DEP_NAME,
        result,
        cache_sec=config.probe_cache_sec,
        cooldown_sec=config.probe_cooldown_sec,
    )
    return result


def check_readiness(service: str, version: str) -> ReadinessResult:
    """
    Checks that the search engine is ready and summarizes the outcome.

    Args:
        service: The name of the service being checked.
        version: The version of the service.
    """
    config = get_config()
    dep = probe_valkey()
    ready = dep["ok"]
    summary: Literal["ok", "down"] = "ok" if ready else "down"
    log_event(
        "INFO",
        "readiness_check",
        service=service,
        ready=ready,
        summary=summary,
        reason=dep["reason"],
    )
    return {
        "service": service,
        "env": config.environment,
        "version": version,
        "ready": ready,
        "summary": summary,
        "deps": {_DEP_NAME: dep},
    }


def clear_probe_cache() -> None:
    """Clears all cached probe results. Essential for testing environments."""
    _probe_cache.clear()
