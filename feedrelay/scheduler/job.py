"""Job: a named group of tasks sharing one trigger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from threading import Event

import structlog

from ..engine.task import Task, TaskResult, TaskStatus
from ..engine.thread_pool import ThreadPoolManager
from ..logging_conf import configure_logging
from .triggers import Trigger


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass(slots=True)
class JobRun:
    """Results of every task of one job firing."""

    job: str
    results: list[TaskResult] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(result.failed for result in self.results)

    @property
    def delivered(self) -> int:
        return sum(result.delivered for result in self.results)


class Job:
    """Fire all tasks, then report when the next firing is due."""

    def __init__(
        self,
        name: str,
        tasks: list[Task],
        trigger: Trigger | None = None,
        mode: ExecutionMode = ExecutionMode.SEQUENTIAL,
        thread_pool: ThreadPoolManager | None = None,
        disabled: bool = False,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if mode is ExecutionMode.PARALLEL and thread_pool is None:
            raise ValueError("Parallel jobs need a thread pool")
        self.name = name
        self.tasks = list(tasks)
        self.trigger = trigger
        self.mode = mode
        self.thread_pool = thread_pool
        self.disabled = disabled
        self.consecutive_failures = 0
        self.logger = logger or configure_logging().bind(component="job", job=name)

    def fire(self, cancel_event: Event | None = None) -> JobRun:
        """Run every task once; failures stay inside their task."""

        run = JobRun(self.name)
        if self.mode is ExecutionMode.PARALLEL and self.thread_pool is not None:
            run.results = self.thread_pool.run_all(partial(task.run, cancel_event) for task in self.tasks)
        else:
            for task in self.tasks:
                if cancel_event is not None and cancel_event.is_set():
                    run.results.append(TaskResult(task.name, TaskStatus.CANCELLED))
                    continue
                run.results.append(task.run(cancel_event))

        if run.failed:
            self.consecutive_failures += 1
            self.logger.warning(
                "job_firing_failed",
                job=self.name,
                failed_tasks=[result.task for result in run.results if result.failed],
                consecutive_failures=self.consecutive_failures,
            )
        else:
            self.consecutive_failures = 0
        self.logger.info("job_fired", job=self.name, delivered=run.delivered, tasks=len(run.results))
        return run

    def first_delay(self, now: datetime) -> timedelta:
        if self.trigger is None:
            return timedelta()
        return self.trigger.first_delay(now)

    def next_delay(self, now: datetime) -> timedelta | None:
        """Delay before the next firing, stretched while firings keep failing; ``None`` for one-shot jobs."""

        if self.trigger is None:
            return None
        delay = self.trigger.delay_from(now)
        if self.consecutive_failures > 1:
            backoff = min(delay * 2 ** (self.consecutive_failures - 1), 2 * self.trigger.period)
            delay = max(delay, backoff)
        return delay

    def close(self) -> None:
        for task in self.tasks:
            task.close()

    def __repr__(self) -> str:
        return f"Job({self.name!r}, trigger={self.trigger!r}, tasks={len(self.tasks)}, mode={self.mode.value})"


__all__ = ["ExecutionMode", "Job", "JobRun"]
