# carpark_scraper/pool.py
# Purpose: Bounded-parallel task runner with per-task failure isolation.
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TaskOutcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_with_limit(tasks: Sequence[Callable[[], T]], limit: int = 4) -> List[TaskOutcome[T]]:
    """
    Run zero-argument callables with at most `limit` in flight.

    The executor's `limit` workers each take the next pending task the moment
    their current one settles. Each task's result or exception lands in its own
    slot of the returned list (same order as `tasks`); one failure never touches
    another task. No retries, no cancellation.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    outcomes: List[Optional[TaskOutcome[T]]] = [None] * len(tasks)
    if not tasks:
        return []

    with ThreadPoolExecutor(max_workers=min(limit, len(tasks))) as executor:
        future_to_idx = {executor.submit(task): idx for idx, task in enumerate(tasks)}
        for future in as_completed(future_to_idx):
            idx = future_to_idx[future]
            try:
                outcomes[idx] = TaskOutcome(value=future.result())
            except Exception as e:
                log.debug(f"[pool] task {idx} failed: {type(e).__name__}: {e}")
                outcomes[idx] = TaskOutcome(error=e)

    return outcomes  # type: ignore[return-value]


def count_failures(outcomes: Sequence[TaskOutcome[Any]]) -> int:
    return sum(1 for o in outcomes if not o.ok)
