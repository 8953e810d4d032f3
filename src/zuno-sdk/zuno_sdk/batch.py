"""Bounded-concurrency execution of independent async operations with per-item outcomes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from .config import DEFAULT_BATCH_CONTINUE_ON_ERROR, DEFAULT_BATCH_MAX_CONCURRENCY
from .errors import BatchSizeExceeded, InvalidParameter, ZunoSDKError

logger = logging.getLogger(__name__)

T = TypeVar("T")
BatchOperation = Callable[[], Awaitable[T]]

BATCH_LIMITS = {
    "auctions": 20,
    "listings": 20,
    "allowlist": 100,
}


class BatchStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_STARTED = "not_started"


@dataclass
class BatchOutcome(Generic[T]):
    index: int
    status: BatchStatus
    value: Optional[T] = None
    error: Optional[ZunoSDKError] = None

    @property
    def success(self) -> bool:
        return self.status is BatchStatus.SUCCEEDED


@dataclass(frozen=True)
class BatchOptions:
    continue_on_error: bool = DEFAULT_BATCH_CONTINUE_ON_ERROR
    max_concurrency: int = DEFAULT_BATCH_MAX_CONCURRENCY


def _check_concurrency(max_concurrency: Any) -> int:
    if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int):
        raise InvalidParameter(f"max_concurrency must be an integer, got {max_concurrency!r}.")
    if max_concurrency < 1:
        raise InvalidParameter(f"max_concurrency must be >= 1, got {max_concurrency}.")
    return max_concurrency


async def run_batch(
    operations: Sequence[BatchOperation],
    continue_on_error: bool = DEFAULT_BATCH_CONTINUE_ON_ERROR,
    max_concurrency: int = DEFAULT_BATCH_MAX_CONCURRENCY,
    on_progress: Optional[Callable[[BatchOutcome], None]] = None,
) -> List[BatchOutcome]:
    """Run zero-argument async thunks with at most ``max_concurrency`` in flight.

    The result always has one outcome per operation, in input order. Failures
    are captured as ``FAILED`` outcomes instead of being raised. With
    ``continue_on_error=False`` operations already running finish, but nothing
    new starts after the first failure; those entries stay ``NOT_STARTED``.
    """
    limit = _check_concurrency(max_concurrency)
    operations = list(operations)
    for position, operation in enumerate(operations):
        if not callable(operation):
            raise InvalidParameter(f"operations[{position}] is not callable.")

    total = len(operations)
    outcomes: List[BatchOutcome] = [
        BatchOutcome(index=i, status=BatchStatus.NOT_STARTED) for i in range(total)
    ]
    if not total:
        return outcomes

    next_index = 0
    stopped = False

    async def worker() -> None:
        nonlocal next_index, stopped
        while not stopped and next_index < total:
            index = next_index
            next_index += 1
            try:
                value = await operations[index]()
            except Exception as exc:
                outcome = BatchOutcome(
                    index=index, status=BatchStatus.FAILED, error=ZunoSDKError.wrap(exc)
                )
                logger.debug("batch item %d/%d failed: %s", index + 1, total, exc)
                if not continue_on_error:
                    stopped = True
            else:
                outcome = BatchOutcome(index=index, status=BatchStatus.SUCCEEDED, value=value)
                logger.debug("batch item %d/%d succeeded", index + 1, total)
            outcomes[index] = outcome
            if on_progress is not None:
                try:
                    on_progress(outcome)
                except Exception:
                    logger.exception("batch progress callback failed for item %d", index + 1)

    await asyncio.gather(*(worker() for _ in range(min(limit, total))))

    if stopped:
        skipped = sum(1 for o in outcomes if o.status is BatchStatus.NOT_STARTED)
        logger.warning("batch stopped after first failure; %d of %d not started", skipped, total)
    return outcomes


def summarize(outcomes: Sequence[BatchOutcome]) -> Dict[str, int]:
    counts = {status.value: 0 for status in BatchStatus}
    for outcome in outcomes:
        counts[outcome.status.value] += 1
    counts["total"] = len(outcomes)
    return counts


def validate_batch_size(items: Sequence[Any], max_size: int, param_name: str) -> None:
    if len(items) == 0:
        raise InvalidParameter(f"{param_name} cannot be empty.")
    if len(items) > max_size:
        raise BatchSizeExceeded(f"{param_name} exceeds maximum batch size of {max_size}.")
