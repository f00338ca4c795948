"""Bounded-parallelism runner for batches of independent I/O tasks."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="pool")

T = TypeVar("T")


@dataclass
class TaskOutcome(Generic[T]):
    """Settled result of one task: either a value or the exception it raised."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ConcurrencyLimitedPool:
    """
    Run zero-argument tasks with at most `max_concurrency` active at once.

    The limit is shared by every `run` call on the same pool, including calls
    made concurrently from different threads: each task takes a slot from one
    semaphore before it starts. A failing task does not cancel its siblings,
    and `run` only returns once every task settled.
    """

    def __init__(self, max_concurrency: int, *, name: str = "routewind-pool") -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.name = name
        self._slots = threading.BoundedSemaphore(max_concurrency)

    def _guarded(self, task: Callable[[], T]) -> T:
        with self._slots:
            return task()

    def run(self, tasks: Sequence[Callable[[], T]]) -> List[TaskOutcome[T]]:
        """Run all tasks to completion; outcomes are returned in task order."""
        if not tasks:
            return []

        workers = min(self.max_concurrency, len(tasks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self.name) as executor:
            futures = [executor.submit(self._guarded, task) for task in tasks]
            outcomes: List[TaskOutcome[T]] = []
            for future in futures:
                error = future.exception()
                if error is not None:
                    outcomes.append(TaskOutcome(error=error))
                else:
                    outcomes.append(TaskOutcome(value=future.result()))

        failed = sum(1 for o in outcomes if not o.ok)
        if failed:
            logger.warning(
                "Pool finished with failures",
                extra={"tasks": len(tasks), "failed": failed},
            )
        else:
            logger.debug("Pool finished", extra={"tasks": len(tasks)})
        return outcomes


def pooled(tasks: Sequence[Callable[[], Any]], limit: int) -> List[TaskOutcome[Any]]:
    """Shorthand for ConcurrencyLimitedPool(limit).run(tasks)."""
    return ConcurrencyLimitedPool(limit).run(tasks)
