"""Filter actions: batch in, order-preserving subset out."""

from __future__ import annotations

import re
from enum import Enum

from ..entry import Entry, Field
from ..pipeline import RunContext
from ..query.regex import compile_pattern
from ..read_filter import ReadFilter
from .base import FilterAction


class TakeFrom(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"


class Take(FilterAction):
    """Keep ``num`` entries from the newest (head) or oldest (tail) end of the batch."""

    name = "take"

    def __init__(self, take_from: TakeFrom | str, num: int) -> None:
        if num < 0:
            raise ValueError("take num must be >= 0")
        self.take_from = TakeFrom(take_from)
        self.num = num

    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        if self.take_from is TakeFrom.NEWEST:
            return entries[: self.num]
        if self.num == 0:
            return []
        return entries[-self.num :]

    def __repr__(self) -> str:
        return f"Take({self.take_from.value}, {self.num})"


class Contains(FilterAction):
    """Keep entries whose ``field`` matches ``pattern``; an absent field drops the entry."""

    name = "contains"

    def __init__(self, field: Field | str, pattern: str | re.Pattern[str]) -> None:
        self.field = Field(field)
        self.pattern = compile_pattern(pattern) if isinstance(pattern, str) else pattern

    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        kept: list[Entry] = []
        for entry in entries:
            value = self.field.get(entry)
            if value is not None and self.pattern.search(value):
                kept.append(entry)
        return kept

    def __repr__(self) -> str:
        return f"Contains({self.field.value}={self.pattern.pattern!r})"


class ReadFilterAction(FilterAction):
    """Drop already read entries and register the filter for the post-delivery commit."""

    name = "read_filter"

    def __init__(self, read_filter: ReadFilter) -> None:
        self.read_filter = read_filter

    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        run.read_filter = self.read_filter
        kept = self.read_filter.filter(entries)
        run.logger.debug(
            "read_filter_applied",
            task=run.task_name,
            before=len(entries),
            after=len(kept),
        )
        return kept

    def __repr__(self) -> str:
        return f"ReadFilterAction({self.read_filter!r})"


__all__ = ["Contains", "ReadFilterAction", "Take", "TakeFrom"]
