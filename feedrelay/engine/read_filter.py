"""Read-filter strategies deciding which entries are new.

Batches arrive newest-first. After the sink has run, the filter is told
which ids were delivered (in delivery order, oldest-first) and records
them so they are not delivered again on the next run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from .entry import Entry


class ReadFilterKind(str, Enum):
    NEWER_THAN_READ = "newer_than_read"
    NOT_PRESENT_IN_READ_LIST = "not_present_in_read_list"


@dataclass(slots=True)
class DeliveryOutcome:
    """Result of handing one entry to the sink."""

    entry_id: str | None
    delivered: bool
    # only failed sends keep a newer-than-read filter from advancing
    blocks: bool = False


class ReadFilter(ABC):
    """Persisted dedup state owned by exactly one task."""

    kind: ReadFilterKind

    @abstractmethod
    def filter(self, entries: list[Entry]) -> list[Entry]:
        """Return the entries not yet read, preserving order."""

    @abstractmethod
    def commit(self, outcomes: Iterable[DeliveryOutcome]) -> bool:
        """Record delivered entries; return ``True`` when the state changed."""

    @abstractmethod
    def to_payload(self) -> dict[str, Any]:
        """JSON-serialisable snapshot of the state."""

    @classmethod
    @abstractmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ReadFilter":
        """Restore a filter from :meth:`to_payload` output."""


class NewerThanRead(ReadFilter):
    """Keep only entries newer than the last read id."""

    kind = ReadFilterKind.NEWER_THAN_READ

    def __init__(self, last_read_id: str | None = None) -> None:
        self.last_read_id = last_read_id

    def filter(self, entries: list[Entry]) -> list[Entry]:
        if self.last_read_id is None:
            return list(entries)
        kept: list[Entry] = []
        for entry in entries:
            if entry.effective_id == self.last_read_id:
                break
            kept.append(entry)
        return kept

    def commit(self, outcomes: Iterable[DeliveryOutcome]) -> bool:
        previous = self.last_read_id
        for outcome in outcomes:
            if outcome.blocks:
                break
            if outcome.entry_id is None or not outcome.delivered:
                continue
            self.last_read_id = outcome.entry_id
        return self.last_read_id != previous

    def to_payload(self) -> dict[str, Any]:
        return {"last_read_id": self.last_read_id}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NewerThanRead":
        last_read = payload.get("last_read_id")
        return cls(None if last_read is None else str(last_read))

    def __repr__(self) -> str:
        return f"NewerThanRead(last_read_id={self.last_read_id!r})"


class NotPresentInReadList(ReadFilter):
    """Keep entries whose id has never been delivered."""

    kind = ReadFilterKind.NOT_PRESENT_IN_READ_LIST

    def __init__(self, seen: Iterable[str] = ()) -> None:
        self.seen: set[str] = set(seen)

    def filter(self, entries: list[Entry]) -> list[Entry]:
        return [entry for entry in entries if entry.effective_id is None or entry.effective_id not in self.seen]

    def commit(self, outcomes: Iterable[DeliveryOutcome]) -> bool:
        before = len(self.seen)
        for outcome in outcomes:
            if outcome.delivered and outcome.entry_id is not None:
                self.seen.add(outcome.entry_id)
        return len(self.seen) != before

    def to_payload(self) -> dict[str, Any]:
        return {"seen": sorted(self.seen)}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NotPresentInReadList":
        return cls(str(item) for item in payload.get("seen") or [])

    def __repr__(self) -> str:
        return f"NotPresentInReadList(seen={len(self.seen)} ids)"


_FILTERS: dict[ReadFilterKind, type[ReadFilter]] = {
    ReadFilterKind.NEWER_THAN_READ: NewerThanRead,
    ReadFilterKind.NOT_PRESENT_IN_READ_LIST: NotPresentInReadList,
}


def new_read_filter(kind: ReadFilterKind | str) -> ReadFilter:
    return _FILTERS[ReadFilterKind(kind)]()


def restore_read_filter(kind: ReadFilterKind | str, payload: dict[str, Any]) -> ReadFilter:
    return _FILTERS[ReadFilterKind(kind)].from_payload(payload)


__all__ = [
    "DeliveryOutcome",
    "NewerThanRead",
    "NotPresentInReadList",
    "ReadFilter",
    "ReadFilterKind",
    "new_read_filter",
    "restore_read_filter",
]
