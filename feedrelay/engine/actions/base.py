"""Action contract: every pipeline step maps a batch to a batch."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ...errors import EntryError
from ..entry import Entry
from ..pipeline import RunContext


class Action(ABC):
    """One step of a task pipeline."""

    name = "action"

    @abstractmethod
    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        """Return the batch handed to the next action."""

    def close(self) -> None:
        """Release underlying resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class FilterAction(Action):
    """Batch to order-preserving subset."""


class EntryToEntries(Action):
    """Replace every entry with zero or more entries derived from it."""

    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        output: list[Entry] = []
        for entry in entries:
            try:
                output.extend(self.expand(entry, run))
            except EntryError as exc:
                run.drop(entry, exc)
        return output

    @abstractmethod
    def expand(self, entry: Entry, run: RunContext) -> list[Entry]:
        """Entries replacing ``entry`` in the batch."""


class FieldTransform(Action):
    """Mutate each entry in place; entries only leave the batch on error."""

    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        kept: list[Entry] = []
        for entry in entries:
            try:
                self.transform(entry)
            except EntryError as exc:
                run.drop(entry, exc)
                continue
            kept.append(entry)
        return kept

    @abstractmethod
    def transform(self, entry: Entry) -> None:
        """Mutate ``entry``."""


__all__ = ["Action", "EntryToEntries", "FieldTransform", "FilterAction"]
