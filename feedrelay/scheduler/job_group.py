"""JobGroup: drives every job on an APScheduler background scheduler."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta
from threading import Event, Lock
from typing import Callable, Iterable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from ..engine.thread_pool import ThreadPoolManager
from ..errors import ConfigError
from ..logging_conf import configure_logging
from .job import Job, JobRun


class JobGroup:
    """Own the scheduling loop and the failure-isolation boundary of all jobs.

    Each firing schedules the next one with a ``DateTrigger`` once it has
    finished, so a slow firing delays the next one instead of queueing a
    backlog.
    """

    def __init__(
        self,
        jobs: Iterable[Job],
        scheduler: BackgroundScheduler | None = None,
        thread_pool: ThreadPoolManager | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.jobs: dict[str, Job] = {}
        for job in jobs:
            if job.name in self.jobs:
                raise ConfigError(f"Duplicate job name {job.name!r}")
            self.jobs[job.name] = job
        self.scheduler = scheduler or BackgroundScheduler()
        self.thread_pool = thread_pool
        self.clock = clock
        self.logger = configure_logging().bind(component="scheduler")
        self.started = False
        self._cancel = Event()
        self._idle = Event()
        self._pending = 0
        self._lock = Lock()
        self._sequence = itertools.count(1)
        self._closed = False

    @property
    def cancel_event(self) -> Event:
        return self._cancel

    # ------------------------------------------------------------------
    def start(self, names: Iterable[str] | None = None) -> None:
        if self.started:
            return
        now = self.clock()
        for job in self.select(names):
            self._schedule(job, job.first_delay(now))
        with self._lock:
            if self._pending == 0:
                self._idle.set()
        self.scheduler.start()
        self.started = True
        self.logger.info("apscheduler_started", jobs=len(self.jobs))

    def run_forever(self, names: Iterable[str] | None = None, poll_interval: float = 0.5) -> None:
        """Block until :meth:`shutdown` is requested or every one-shot job has finished."""

        self.start(names)
        try:
            while not self._cancel.is_set() and not self._idle.is_set():
                self._cancel.wait(poll_interval)
        finally:
            self.shutdown()

    def run_once(self, names: Iterable[str] | None = None) -> dict[str, JobRun]:
        """Fire the selected jobs once, synchronously, in configuration order."""

        runs: dict[str, JobRun] = {}
        for job in self.select(names):
            if self._cancel.is_set():
                break
            runs[job.name] = self._guarded_fire(job)
        return runs

    def shutdown(self, wait: bool = True) -> None:
        """Signal cancellation and let in-flight firings drain."""

        self._cancel.set()
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            self.logger.info("apscheduler_stopped")
        if self.thread_pool is not None:
            self.thread_pool.shutdown(wait=wait)
        if not self._closed:
            for job in self.jobs.values():
                job.close()
            self._closed = True

    def request_shutdown(self) -> None:
        """Ask :meth:`run_forever` to return; safe to call from a signal handler."""

        self._cancel.set()

    def select(self, names: Iterable[str] | None = None) -> list[Job]:
        if names is None:
            return [job for job in self.jobs.values() if not job.disabled]
        selected: list[Job] = []
        for name in names:
            if name not in self.jobs:
                raise ConfigError(f"Unknown job {name!r}")
            selected.append(self.jobs[name])
        return selected

    def list_jobs(self) -> list[dict]:
        scheduled = {}
        for aps_job in self.scheduler.get_jobs():
            job_name = aps_job.id.split("::")[1]
            scheduled[job_name] = getattr(aps_job, "next_run_time", None)
        return [
            {
                "name": job.name,
                "trigger": repr(job.trigger) if job.trigger else "once",
                "mode": job.mode.value,
                "tasks": [task.name for task in job.tasks],
                "disabled": job.disabled,
                "next_run_time": scheduled.get(job.name),
            }
            for job in self.jobs.values()
        ]

    # ------------------------------------------------------------------
    def _schedule(self, job: Job, delay: timedelta) -> None:
        run_date = self.clock() + delay
        # a fresh id per firing, the previous DateTrigger job may still be finishing
        job_id = f"job::{job.name}::{next(self._sequence)}"
        with self._lock:
            self._pending += 1
            self._idle.clear()
        self.scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            args=[job],
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )
        self.logger.info("job_scheduled", job=job.name, run_date=run_date.isoformat(), delay=delay.total_seconds())

    def _fire(self, job: Job) -> None:
        try:
            if self._cancel.is_set():
                return
            self._guarded_fire(job)
            if self._cancel.is_set():
                return
            delay = job.next_delay(self.clock())
            if delay is None:
                self.logger.info("job_finished", job=job.name)
                return
            self._schedule(job, delay)
        finally:
            with self._lock:
                self._pending -= 1
                if self._pending <= 0:
                    self._idle.set()

    def _guarded_fire(self, job: Job) -> JobRun:
        try:
            return job.fire(self._cancel)
        except Exception as exc:  # noqa: BLE001
            job.consecutive_failures += 1
            self.logger.exception("job_crashed", job=job.name, error_kind="internal", error=str(exc))
            return JobRun(job.name)


__all__ = ["JobGroup"]
