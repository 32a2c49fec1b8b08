from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_incrementing

from realism_builder.errors import status_code_of

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """Server errors and failures without a status are retried; 4xx are not."""
    if not isinstance(exc, Exception):
        return False
    status = status_code_of(exc)
    return status is None or status >= 500


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "upstream call failed (status=%s), retrying in %.1fs (attempt %d): %s",
        status_code_of(exc) if exc else None,
        state.next_action.sleep if state.next_action else 0.0,
        state.attempt_number,
        exc,
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    *,
    base_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `operation()` up to `max_retries + 1` times.

    Failures with a status below 500 are client errors and are re-raised
    immediately. Anything else (5xx or no status at all) is retried after
    `base_delay * attempt` seconds. The last failure is re-raised once
    attempts run out.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_incrementing(start=base_delay, increment=base_delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        reraise=True,
        sleep=sleep,
    )
    return await retrying(operation)
