"""Transient error retry with exponential backoff and jitter.

Used by provider adapters only: the normalization and tracing core never
retries. Handles timeout, connection, and HTTP status-code errors that
are likely transient.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

# Exception types considered transient (network-level issues)
TRANSIENT_EXCEPTIONS: tuple[type[Exception], ...] = (TimeoutError, ConnectionError)

# HTTP status codes considered transient (rate-limit, server errors)
TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503})


def status_code_of(exc: BaseException) -> int | None:
    """Return the HTTP status attached to an SDK exception, if any."""
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def is_transient(exc: Exception) -> bool:
    """Check if an exception represents a transient error.

    Matches against known transient exception types, then checks
    for HTTP status code attributes commonly set by SDK exceptions.
    """
    if isinstance(exc, TRANSIENT_EXCEPTIONS):
        return True
    return status_code_of(exc) in TRANSIENT_STATUS_CODES


async def retry_with_backoff(
    coro_factory: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> Any:
    """Execute a coroutine with retry on transient errors.

    Uses exponential backoff with full jitter to avoid thundering herd.
    Raises the exception on non-transient errors or when retries are exhausted.

    Args:
        coro_factory: Callable that creates a new awaitable each call.
        max_retries: Maximum number of retry attempts (total calls = max_retries + 1).
        base_delay: Initial backoff delay in seconds.
        max_delay: Maximum backoff delay cap in seconds.

    Returns:
        The awaited result of the first successful call.
    """
    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as exc:
            if not is_transient(exc) or attempt == max_retries:
                raise
            delay = min(base_delay * (2 ** attempt), max_delay)
            jitter = random.uniform(0, delay)  # noqa: S311
            logger.warning(
                "Transient %s on attempt %d/%d, retrying in %.2fs",
                type(exc).__name__,
                attempt + 1,
                max_retries + 1,
                jitter,
            )
            await asyncio.sleep(jitter)

    # Unreachable, but satisfies type checker
    raise RuntimeError("retry_with_backoff: unreachable")
