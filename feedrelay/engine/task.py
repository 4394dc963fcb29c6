"""Task: one source bound to one pipeline and one read-filter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from threading import Event, Lock
from typing import TYPE_CHECKING

import structlog

from ..errors import FeedRelayError, FetchError, FiringCancelled, StoreError
from ..logging_conf import task_logger
from .actions.base import Action
from .actions.filters import ReadFilterAction
from .entry import Entry
from .pipeline import RunContext, run_pipeline
from .read_filter import ReadFilter
from .sources.base import BaseSource

if TYPE_CHECKING:
    from ..infra.storage import StateStore


class TaskState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PROCESSING = "processing"
    DELIVERING = "delivering"
    PERSISTING_STATE = "persisting_state"
    DISABLED = "disabled"


class TaskStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    DISABLED = "disabled"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class TaskResult:
    """Summary of one firing."""

    task: str
    status: TaskStatus
    delivered: int = 0
    dropped: int = 0
    error_kind: str | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is TaskStatus.FAILED


class Task:
    """Run a source through its actions and keep the read-filter state up to date."""

    def __init__(
        self,
        name: str,
        source: BaseSource,
        actions: list[Action],
        read_filter: ReadFilter | None = None,
        store: "StateStore | None" = None,
        tag: str | None = None,
        disabled: bool = False,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.name = name
        self.source = source
        self.actions = list(actions)
        self.read_filter = read_filter
        self.store = store
        self.tag = tag
        self.disabled = disabled
        self.logger = logger or task_logger(name)
        self._active = Lock()
        self._run: RunContext | None = None
        self._stage = TaskState.DISABLED if disabled else TaskState.IDLE
        if read_filter is not None and store is not None:
            self._load_state()

    @property
    def state(self) -> TaskState:
        if self.disabled:
            return TaskState.DISABLED
        run = self._run
        if run is not None and self._stage is TaskState.PROCESSING:
            return TaskState(run.stage)
        return self._stage

    def run(self, cancel_event: Event | None = None) -> TaskResult:
        """Fire once. A firing that overlaps a running one is skipped, not queued."""

        if self.disabled:
            return TaskResult(self.name, TaskStatus.DISABLED)
        if not self._active.acquire(blocking=False):
            self.logger.warning("task_skipped_overrun", task=self.name)
            return TaskResult(self.name, TaskStatus.SKIPPED)
        try:
            return self._fire(cancel_event)
        finally:
            self._run = None
            self._stage = TaskState.IDLE
            self._active.release()

    # ------------------------------------------------------------------
    def _fire(self, cancel_event: Event | None) -> TaskResult:
        run = RunContext(self.name, self.logger, cancel_event=cancel_event, tag=self.tag)
        self._run = run
        survivors: list[Entry] = []
        status = TaskStatus.SUCCESS
        try:
            run.checkpoint("fetch")
            self._stage = TaskState.FETCHING
            entries = self.source.fetch()
            self.logger.debug("task_fetched", task=self.name, entries=len(entries))
            self._stage = TaskState.PROCESSING
            survivors = run_pipeline(self.actions, entries, run)
        except FiringCancelled as exc:
            self.logger.info("task_cancelled", task=self.name, error_kind=exc.kind, stage=run.stage)
            status = TaskStatus.CANCELLED
        except FetchError as exc:
            self.logger.error("task_fetch_failed", task=self.name, error_kind=exc.kind, error=str(exc))
            return TaskResult(self.name, TaskStatus.FAILED, dropped=run.dropped, error_kind=exc.kind, error=str(exc))
        except FeedRelayError as exc:
            self.logger.error("task_failed", task=self.name, error_kind=exc.kind, error=str(exc))
            return TaskResult(self.name, TaskStatus.FAILED, dropped=run.dropped, error_kind=exc.kind, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            self.logger.exception("task_crashed", task=self.name, error_kind="internal", error=str(exc))
            return TaskResult(self.name, TaskStatus.FAILED, dropped=run.dropped, error_kind="internal", error=str(exc))

        # deliveries already happened, so record them even when cancelled
        delivered = self._commit(run, survivors)
        result = TaskResult(self.name, status, delivered=delivered, dropped=run.dropped)
        self.logger.info(
            "task_finished",
            task=self.name,
            status=result.status.value,
            delivered=result.delivered,
            dropped=result.dropped,
        )
        return result

    def _commit(self, run: RunContext, survivors: list[Entry]) -> int:
        outcomes = run.delivery_outcomes(survivors)
        delivered_ids = [outcome.entry_id for outcome in outcomes if outcome.delivered and outcome.entry_id]
        if delivered_ids:
            try:
                self.source.mark_delivered(delivered_ids)
            except FetchError as exc:
                self.logger.warning("source_mark_failed", task=self.name, error_kind=exc.kind, error=str(exc))
        read_filter = run.read_filter
        if read_filter is None or not read_filter.commit(outcomes):
            return sum(1 for outcome in outcomes if outcome.delivered)
        self._stage = TaskState.PERSISTING_STATE
        self._save_state(read_filter)
        return sum(1 for outcome in outcomes if outcome.delivered)

    def _save_state(self, read_filter: ReadFilter) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self.name, read_filter)
        except StoreError as exc:
            # not retried: delivered entries may be delivered again next run
            self.logger.error(
                "read_filter_save_failed",
                task=self.name,
                error_kind=exc.kind,
                error=str(exc),
                lost_dedup_state=True,
            )
            return
        self.logger.debug("read_filter_saved", task=self.name, state=repr(read_filter))

    def _load_state(self) -> None:
        if self.read_filter is None or self.store is None:
            return
        try:
            stored = self.store.load(self.name, self.read_filter.kind)
        except StoreError as exc:
            self.logger.error("read_filter_load_failed", task=self.name, error_kind=exc.kind, error=str(exc))
            return
        if stored is not None:
            self.read_filter = stored
            for action in self.actions:
                if isinstance(action, ReadFilterAction):
                    action.read_filter = stored
            self.logger.debug("read_filter_loaded", task=self.name, state=repr(stored))

    def close(self) -> None:
        self.source.close()
        for action in self.actions:
            action.close()

    def __repr__(self) -> str:
        return f"Task({self.name!r}, source={self.source!r}, actions={len(self.actions)})"


__all__ = ["Task", "TaskResult", "TaskState", "TaskStatus"]
