"""HTTP utilities providing retry/backoff semantics for Graph calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryConfig:
    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_retry_after_seconds: float = 30.0,
    ) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.max_retry_after_seconds = max_retry_after_seconds


def _retry_delay(response: httpx.Response | None, attempt: int, config: RetryConfig) -> float:
    if response is not None:
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return min(float(retry_after), config.max_retry_after_seconds)
    return config.backoff_seconds * attempt


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """
    Invoke ``func`` until it yields a non-retryable response.

    Throttling (429) and server errors are retried with backoff, honoring
    ``Retry-After``. Client errors are returned to the caller untouched so it
    can decide how to surface them. Transport failures are retried and the last
    one is re-raised once attempts run out.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        attempt += 1
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            if attempt >= config.attempts:
                raise
            delay = _retry_delay(None, attempt, config)
            logger.warning("Transport error (%s); retrying in %.1fs", exc, delay)
            await asyncio.sleep(delay)
            continue

        if response.status_code not in RETRYABLE_STATUS_CODES or attempt >= config.attempts:
            return response

        delay = _retry_delay(response, attempt, config)
        logger.warning(
            "Graph responded %s; retrying in %.1fs", response.status_code, delay
        )
        await asyncio.sleep(delay)


__all__ = ["RETRYABLE_STATUS_CODES", "RetryConfig", "request_with_retry"]
