"""HTTP helpers with retry/backoff for awork lookups."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    delay = min(max_delay, base_delay * (2**attempt))
    if delay:
        delay = delay + random.uniform(0, delay / 2)
    return delay


def _retry_after_seconds(response: httpx.Response, max_delay: float) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return min(max_delay, max(0.0, float(value)))
    except ValueError:
        return None


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
) -> httpx.Response:
    """
    Execute an idempotent HTTP request with exponential backoff retries.

    Retries transport errors and the statuses in retry_statuses. A
    Retry-After header (seconds) on the response overrides the backoff.
    The last response is returned even if it still carries a retry status.
    """
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES

    for attempt in range(max_attempts):
        is_last = attempt >= max_attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if is_last:
                raise
            delay = _backoff_delay(attempt, base_delay, max_delay)
            logger.warning("HTTP request failed, retrying", exc_info=exc)
            if delay:
                await asyncio.sleep(delay)
            continue

        if response.status_code in statuses and not is_last:
            delay = _retry_after_seconds(response, max_delay)
            if delay is None:
                delay = _backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "HTTP request returned %s, retrying", response.status_code
            )
            if delay:
                await asyncio.sleep(delay)
            continue

        return response

    return response
