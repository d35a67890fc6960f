from __future__ import annotations

"""
worker_pool.py - bounded fan-out for blocking jobs (HTTP page fetches).

Task queue + fixed worker set + position-preserving results:
- at most `workers` jobs run at once
- a job that raises becomes TaskOutcome(error=...), the other jobs keep going
- run() returns outcomes in input order, whatever order they finished in
"""

from dataclasses import dataclass
import logging
import queue
import threading
from typing import Callable, Generic, Optional, Sequence, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class TaskOutcome(Generic[T, R]):
    index: int
    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WorkerPool(Generic[T, R]):
    def __init__(self, fn: Callable[[T], R], *, workers: int = 8, name: str = "worker") -> None:
        if int(workers) < 1:
            raise ValueError("workers must be >= 1")
        self.fn = fn
        self.workers = int(workers)
        self.name = name

    def _work(self, tasks: "queue.Queue[Optional[tuple[int, T]]]", results: "queue.Queue[TaskOutcome[T, R]]") -> None:
        while True:
            task = tasks.get()
            try:
                if task is None:
                    return
                idx, item = task
                try:
                    value = self.fn(item)
                except Exception as e:
                    logger.debug("%s task #%d failed: %s", self.name, idx, e)
                    results.put(TaskOutcome(index=idx, item=item, error=e))
                else:
                    results.put(TaskOutcome(index=idx, item=item, value=value))
            finally:
                tasks.task_done()

    def run(self, items: Sequence[T]) -> list[TaskOutcome[T, R]]:
        if not items:
            return []

        tasks: "queue.Queue[Optional[tuple[int, T]]]" = queue.Queue()
        results: "queue.Queue[TaskOutcome[T, R]]" = queue.Queue()
        for idx, item in enumerate(items):
            tasks.put((idx, item))

        n_threads = min(self.workers, len(items))
        # one stop marker per thread, queued after the real work
        for _ in range(n_threads):
            tasks.put(None)

        threads = [
            threading.Thread(target=self._work, args=(tasks, results), name=f"{self.name}-{i}", daemon=True)
            for i in range(n_threads)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ordered: list[Optional[TaskOutcome[T, R]]] = [None] * len(items)
        while not results.empty():
            outcome = results.get()
            ordered[outcome.index] = outcome
        return [o for o in ordered if o is not None]
