"""HTTP helpers shared by the collaborator clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 502, 503, 504}


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 0.5) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args: Any,
    retry_config: RetryConfig | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Call ``func`` until it yields a non-retryable response.

    Transport failures and throttling/gateway statuses are retried with a
    linear backoff. Any other response, including 4xx, is returned as-is so
    callers can read the provider's error payload.
    """
    config = retry_config or RetryConfig()
    last_exception: Exception | None = None
    response: httpx.Response | None = None

    for attempt in range(1, config.attempts + 1):
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            last_exception = exc
            logger.warning("HTTP transport error (attempt %s): %s", attempt, exc)
        else:
            if response.status_code not in _RETRYABLE_STATUS:
                return response
            logger.warning(
                "Retryable HTTP status %s (attempt %s)", response.status_code, attempt
            )
        if attempt < config.attempts:
            await asyncio.sleep(config.backoff_seconds * attempt)

    if response is not None:
        return response
    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


def json_or_empty(response: httpx.Response) -> dict:
    """Decode a JSON object body, treating anything else as empty."""
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


__all__ = ["RetryConfig", "json_or_empty", "request_with_retry"]
