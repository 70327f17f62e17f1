"""HTTP helpers with retry/backoff for provider APIs (Twilio, VAPI)."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}
DEFAULT_TIMEOUT_SECONDS = 20.0


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential delay for ``attempt`` (0-based) with up to 50% jitter."""
    delay = min(max_delay, base_delay * (2**attempt))
    if delay <= 0:
        return 0.0
    return delay + random.uniform(0, delay / 2)


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
    retry_errors: tuple[type[httpx.RequestError], ...] = (httpx.RequestError,),
    service: str = "http",
) -> httpx.Response:
    """
    Execute an HTTP request, retrying transport errors and retryable statuses.

    Non-idempotent calls should narrow ``retry_errors`` to failures that
    happen before the request reaches the provider (e.g. ``httpx.ConnectError``).

    The last response is returned as-is once attempts run out; the last
    transport error is re-raised.
    """
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES
    response: httpx.Response | None = None

    for attempt in range(max_attempts):
        is_last = attempt >= max_attempts - 1
        try:
            response = await request_fn()
        except retry_errors as exc:
            if is_last:
                raise
            logger.warning("%s request failed, retrying", service, exc_info=exc)
            delay = backoff_delay(attempt, base_delay, max_delay)
            if delay:
                await asyncio.sleep(delay)
            continue

        if response.status_code in statuses and not is_last:
            logger.warning("%s request returned %s, retrying", service, response.status_code)
            delay = backoff_delay(attempt, base_delay, max_delay)
            if delay:
                await asyncio.sleep(delay)
            continue

        return response

    assert response is not None
    return response


def error_detail(response: httpx.Response) -> str | None:
    """Best-effort error message from a JSON error body."""
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:300] or None
    if isinstance(data, dict):
        detail = data.get("message") or data.get("error") or data.get("detail")
        if isinstance(detail, list):
            detail = "; ".join(str(item) for item in detail)
        if detail:
            return str(detail)
    return None
