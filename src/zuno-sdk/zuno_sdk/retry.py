"""Caller-side wrappers for batch thunks: retry with backoff and a hard deadline."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import InvalidParameter, NotFound, RateLimited, RequestFailed, Timeout, Unauthorized

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE = (RateLimited, Timeout)


def _default_should_retry(exc: Exception, attempt: int) -> bool:
    if isinstance(exc, RETRYABLE):
        return True
    if isinstance(exc, (NotFound, Unauthorized)):
        return False
    # Server-side failures may clear up; other client errors will not.
    if isinstance(exc, RequestFailed):
        return exc.status_code is None or exc.status_code >= 500
    return False


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    should_retry: Optional[Callable[[Exception, int], bool]] = None,
) -> T:
    """Await ``operation`` up to ``max_attempts`` times, sleeping ``backoff_seconds * attempt`` between tries."""
    if max_attempts < 1:
        raise InvalidParameter("max_attempts must be >= 1.")
    check = should_retry or _default_should_retry

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= max_attempts or not check(exc, attempt):
                raise
            delay = backoff_seconds * attempt
            logger.debug("attempt %d/%d failed (%s); retrying in %.2fs", attempt, max_attempts, exc, delay)
            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop exited without returning or raising.")


def with_timeout(operation: Callable[[], Awaitable[T]], seconds: float) -> Callable[[], Awaitable[T]]:
    """Wrap a thunk so it fails with ``Timeout`` after ``seconds``."""
    if seconds <= 0:
        raise InvalidParameter("timeout seconds must be positive.")

    async def wrapped() -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=seconds)
        except asyncio.TimeoutError as exc:
            raise Timeout(f"Operation timed out after {seconds}s.") from exc

    return wrapped
