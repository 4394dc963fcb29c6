"""Extraction contract shared by markup and keyed-data queries."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ...errors import RequiredFieldMissing
from .regex import RegexReplace


class DataQuery(ABC):
    """Locate candidate strings in a node, post-process them, enforce optionality."""

    def __init__(self, optional: bool = False, regex: RegexReplace | None = None) -> None:
        self.optional = optional
        self.regex = regex

    @abstractmethod
    def locate(self, node: Any) -> list[str]:
        """Return the raw strings found under ``node`` (possibly empty)."""

    def extract(self, node: Any, field: str) -> list[str] | None:
        """Run the query against ``node``.

        Returns ``None`` when nothing was found and the query is optional,
        raises :class:`RequiredFieldMissing` when it is not.
        """

        values = [value.strip() for value in self.locate(node)]
        values = [value for value in values if value]
        if self.regex is not None:
            replaced = (self.regex.apply(value) for value in values)
            values = [value for value in replaced if value]
        if values:
            return values
        if self.optional:
            return None
        raise RequiredFieldMissing(field, self.describe())

    def extract_joined(self, node: Any, field: str, separator: str = "\n\n") -> str | None:
        values = self.extract(node, field)
        if values is None:
            return None
        return separator.join(values)

    def extract_first(self, node: Any, field: str) -> str | None:
        values = self.extract(node, field)
        return values[0] if values else None

    def describe(self) -> str:
        return repr(self)


def extract_many(queries: list[DataQuery], node: Any, field: str, separator: str = "\n\n") -> str | None:
    """Join the results of several queries, skipping optional misses."""

    parts: list[str] = []
    for query in queries:
        values = query.extract(node, field)
        if values:
            parts.extend(values)
    return separator.join(parts) if parts else None


__all__ = ["DataQuery", "extract_many"]
