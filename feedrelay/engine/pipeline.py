"""Per-firing context and the ordered action pipeline."""

from __future__ import annotations

from threading import Event
from typing import TYPE_CHECKING, Iterable

import structlog

from ..errors import FeedRelayError, FiringCancelled, SendError
from .entry import Entry
from .read_filter import DeliveryOutcome, ReadFilter

if TYPE_CHECKING:
    from .actions.base import Action


class RunContext:
    """State shared by the actions of one task firing."""

    def __init__(
        self,
        task_name: str,
        logger: structlog.BoundLogger,
        cancel_event: Event | None = None,
        tag: str | None = None,
    ) -> None:
        self.task_name = task_name
        self.logger = logger
        self.cancel_event = cancel_event
        self.tag = tag
        self.read_filter: ReadFilter | None = None
        self.stage = "processing"
        # None until a sink reports; pipelines without a sink deliver implicitly
        self.outcomes: list[DeliveryOutcome] | None = None
        self.dropped = 0

    def checkpoint(self, stage: str) -> None:
        """Raise :class:`FiringCancelled` if shutdown was requested."""

        if self.cancel_event is not None and self.cancel_event.is_set():
            raise FiringCancelled(f"Task {self.task_name} cancelled before {stage}")

    def drop(self, entry: Entry, exc: FeedRelayError) -> None:
        self.dropped += 1
        self.logger.warning(
            "entry_dropped",
            task=self.task_name,
            entry_id=entry.effective_id,
            error_kind=exc.kind,
            error=str(exc),
        )

    def record_delivery(self, entry: Entry, error: FeedRelayError | None = None) -> None:
        if self.outcomes is None:
            self.outcomes = []
        self.outcomes.append(
            DeliveryOutcome(
                entry_id=entry.effective_id,
                delivered=error is None,
                blocks=isinstance(error, SendError),
            )
        )

    def delivery_outcomes(self, survivors: list[Entry]) -> list[DeliveryOutcome]:
        """Outcomes in delivery order; survivors count as delivered when no sink ran."""

        if self.outcomes is not None:
            return list(self.outcomes)
        return [DeliveryOutcome(entry.effective_id, True) for entry in reversed(survivors)]


def run_pipeline(actions: Iterable["Action"], entries: list[Entry], run: RunContext) -> list[Entry]:
    """Apply ``actions`` in order; an empty batch skips every remaining action."""

    batch = list(entries)
    for action in actions:
        if not batch:
            run.logger.debug("pipeline_short_circuit", task=run.task_name, next_action=action.name)
            break
        batch = action.apply(batch, run)
    return batch


__all__ = ["RunContext", "run_pipeline"]
