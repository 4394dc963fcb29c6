"""Shared worker pool for parallel job firings."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Callable, Iterable, TypeVar

T = TypeVar("T")


class ThreadPoolManager:
    """Own the executor every parallel job submits its tasks to.

    The executor is created on first use and recreated if a firing arrives
    after :meth:`shutdown`, so a group can be stopped and started again.
    """

    def __init__(self, workers: int = 8) -> None:
        self.workers = workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def get(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="feedrelay")
            return self._executor

    def run_all(self, calls: Iterable[Callable[[], T]]) -> list[T]:
        """Run ``calls`` concurrently and return their results in submission order."""

        executor = self.get()
        futures: list[Future[T]] = [executor.submit(call) for call in calls]
        return [future.result() for future in futures]

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


__all__ = ["ThreadPoolManager"]
