from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx

from rule_of_thirds.core.exceptions import CollectorError, CollectorTimeoutError

P = ParamSpec("P")
R = TypeVar("R")

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

logger = logging.getLogger(__name__)


def _is_retryable(exc: httpx.RequestError | httpx.HTTPStatusError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ReadTimeout))


def retry_with_backoff(
    retries: int = 2,
    delay: float = 0.5,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """
    Retry one provider HTTP request on transient failures.

    Wraps the ``_request`` methods of the news, video and Amplitude clients.
    Only 429/5xx responses, connect errors and read timeouts are retried;
    anything else propagates at once so the client can map it to its
    ``SubSourceError`` subclass. This sits below ``with_retry_and_timeout``,
    which retries whole collector attempts.

    Args:
        retries: Extra attempts after the first call.
        delay: Seconds before the first retry, doubled after each one.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            current_delay = delay
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                    attempt += 1
                    if attempt > retries or not _is_retryable(exc):
                        raise
                    await asyncio.sleep(current_delay)
                    current_delay *= 2

        return wrapper

    return decorator


def exponential_backoff(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return float(2**attempt)


def no_backoff(attempt: int) -> float:
    return 0.0


async def with_retry_and_timeout(
    operation: Callable[[], Awaitable[R]],
    *,
    max_attempts: int = 2,
    timeout: float = 30.0,
    backoff: Callable[[int], float] = exponential_backoff,
    label: str = "operation",
    log: logging.Logger | None = None,
) -> R:
    """
    Run ``operation`` until it succeeds, bounding every attempt by ``timeout``.

    ``operation`` is called afresh for each attempt, so no state is shared
    between attempts. A timed-out attempt is cancelled before the next one
    starts; its late result can never surface.

    Args:
        operation: Zero-argument callable returning a new awaitable per call.
        max_attempts: Total attempts, including the first one.
        timeout: Seconds allowed for each attempt.
        backoff: Maps the 1-based number of the failed attempt to a delay in seconds.
        label: Name used in log lines and in the raised error.
        log: Logger for attempt failures. Defaults to the module logger.

    Returns:
        The first successful result.

    Raises:
        ValueError: If ``max_attempts`` is less than 1.
        CollectorError: Once every attempt has failed, carrying the last error's message.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    log = log or logger
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = CollectorTimeoutError(
                f"{label} timed out after {timeout:g}s",
                collector=label,
                attempts=attempt,
            )
        except Exception as exc:
            last_error = exc

        log.warning("%s attempt %d/%d failed: %s", label, attempt, max_attempts, last_error)
        if attempt < max_attempts:
            delay = backoff(attempt)
            if delay > 0:
                log.info("Retrying %s in %.1fs", label, delay)
                await asyncio.sleep(delay)

    if isinstance(last_error, CollectorError):
        last_error.attempts = max_attempts
        raise last_error
    raise CollectorError(
        f"{label} failed after {max_attempts} attempts: {last_error}",
        collector=label,
        attempts=max_attempts,
    ) from last_error
