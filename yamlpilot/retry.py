"""Async retry with exponential backoff for GitHub API calls.

Transient failures are retried: HTTP 429 and 5xx, GitHub's secondary rate
limit (a 403 carrying Retry-After or an exhausted X-RateLimit-Remaining),
and connection-level errors. Anything else is raised on the first attempt.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
import time
from typing import Any, Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})

TRANSIENT_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.RemoteProtocolError,
)

T = TypeVar("T")

# Patched in tests
_sleep = asyncio.sleep


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, TRANSIENT_ERRORS):
        return True
    if not isinstance(exc, httpx.HTTPStatusError):
        return False
    response = exc.response
    if response.status_code in TRANSIENT_STATUSES:
        return True
    return response.status_code == 403 and (
        "retry-after" in response.headers
        or response.headers.get("x-ratelimit-remaining") == "0"
    )


def _server_hint(response: httpx.Response) -> float | None:
    """Seconds the server asked us to wait, if it said."""
    retry_after = response.headers.get("retry-after")
    if retry_after:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            return None
    reset = response.headers.get("x-ratelimit-reset")
    if reset and response.headers.get("x-ratelimit-remaining") == "0":
        try:
            return max(float(reset) - time.time(), 0.0)
        except ValueError:
            return None
    return None


def backoff_delay(
    attempt: int,
    *,
    base: float = 1.0,
    cap: float = 60.0,
    jitter: float = 0.3,
    response: httpx.Response | None = None,
) -> float:
    """Seconds to wait before retry number attempt + 1.

    Server hints win (Retry-After, then X-RateLimit-Reset). Otherwise
    base * 2**attempt, capped, spread by +/- jitter.
    """
    if response is not None:
        hinted = _server_hint(response)
        if hinted is not None:
            return min(hinted, cap)
    delay = min(base * 2**attempt, cap)
    spread = delay * jitter
    return max(0.0, delay + random.uniform(-spread, spread))


def _describe(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    return type(exc).__name__


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: float = 0.3,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator: retry a coroutine function on transient HTTP failures.

    Args:
        max_retries: Retries after the first attempt.
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any single delay.
        jitter: Fractional spread applied to computed delays.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return await fn(*args, **kwargs)
                except Exception as exc:
                    if attempt >= max_retries or not is_transient(exc):
                        raise
                    response = exc.response if isinstance(exc, httpx.HTTPStatusError) else None
                    delay = backoff_delay(
                        attempt, base=base_delay, cap=max_delay, jitter=jitter, response=response
                    )
                    logger.warning(
                        "%s failed (%s), retry %d/%d in %.1fs",
                        fn.__name__,
                        _describe(exc),
                        attempt + 1,
                        max_retries,
                        delay,
                    )
                    await _sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
