"""Terminal action handing messages to a sink."""

from __future__ import annotations

from dataclasses import replace

from ...errors import EntryError
from ..entry import Entry
from ..pipeline import RunContext
from ..sinks.base import BaseSink
from .base import Action


def dedup_batch(entries: list[Entry]) -> list[Entry]:
    """Collapse entries sharing an id, keeping the first occurrence."""

    seen: set[str] = set()
    unique: list[Entry] = []
    for entry in entries:
        entry_id = entry.effective_id
        if entry_id is not None:
            if entry_id in seen:
                continue
            seen.add(entry_id)
        unique.append(entry)
    return unique


class SinkAction(Action):
    """Deliver every entry oldest-first; an entry leaves the batch only if delivery fails."""

    name = "sink"

    def __init__(self, sink: BaseSink) -> None:
        self.sink = sink

    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        batch = dedup_batch(entries)
        delivered: list[Entry] = []
        for entry in reversed(batch):
            run.checkpoint("send")
            run.stage = "delivering"
            message = entry.message
            if message.is_empty() and entry.raw_contents:
                message = replace(message, body=entry.raw_contents)
            try:
                receipt = self.sink.send(message, run.tag)
            except EntryError as exc:
                run.drop(entry, exc)
                run.record_delivery(entry, exc)
                continue
            run.record_delivery(entry)
            run.logger.info(
                "entry_delivered",
                task=run.task_name,
                entry_id=entry.effective_id,
                sink=receipt.sink,
                parts=receipt.parts,
            )
            delivered.append(entry)
        delivered.reverse()
        return delivered

    def close(self) -> None:
        self.sink.close()

    def __repr__(self) -> str:
        return f"SinkAction({self.sink!r})"


__all__ = ["SinkAction", "dedup_batch"]
