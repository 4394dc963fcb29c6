"""Path descent over keyed/indexed data (decoded JSON)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from ...errors import TransformError
from .base import DataQuery
from .regex import RegexReplace

_MISSING = object()


@dataclass(frozen=True, slots=True)
class KeyPath:
    """Sequence of keys (mappings) and indices (sequences)."""

    steps: tuple[str | int, ...] = ()

    @classmethod
    def parse(cls, value: "str | Iterable[str | int] | KeyPath") -> "KeyPath":
        """Build a path from a JSON-pointer like string or a list of steps."""

        if isinstance(value, KeyPath):
            return value
        if isinstance(value, str):
            text = value.strip()
            if text in ("", "/"):
                return cls()
            parts = text.lstrip("/").split("/")
            return cls(tuple(part.replace("~1", "/").replace("~0", "~") for part in parts))
        return cls(tuple(value))

    def resolve(self, data: Any) -> Any:
        """Return the value at this path or ``_MISSING``."""

        current = data
        for step in self.steps:
            if isinstance(current, dict):
                key = step if isinstance(step, str) else str(step)
                if key not in current:
                    return _MISSING
                current = current[key]
            elif isinstance(current, list):
                index = _as_index(step)
                if index is None or not -len(current) <= index < len(current):
                    return _MISSING
                current = current[index]
            else:
                return _MISSING
        return current

    def __str__(self) -> str:
        return "/" + "/".join(str(step) for step in self.steps)


def select_items(data: Any, path: KeyPath | None) -> list[Any]:
    """Items found at ``path``: list elements or mapping values. Missing path = no items."""

    found = data if path is None else path.resolve(data)
    if found is _MISSING or found is None:
        return []
    if isinstance(found, list):
        return list(found)
    if isinstance(found, dict):
        return list(found.values())
    raise TransformError(f"Item path {path} points to a {type(found).__name__}, expected a list or mapping")


class KeyDataQuery(DataQuery):
    """Take the scalar (or list of scalars) found at a key path."""

    def __init__(
        self,
        path: KeyPath | str | list[str | int],
        optional: bool = False,
        regex: RegexReplace | None = None,
    ) -> None:
        super().__init__(optional=optional, regex=regex)
        self.path = KeyPath.parse(path)

    def locate(self, node: Any) -> list[str]:
        value = self.path.resolve(node)
        if value is _MISSING or value is None:
            return []
        if isinstance(value, list):
            return [_scalar(item, self.path) for item in value if item is not None]
        return [_scalar(value, self.path)]

    def describe(self) -> str:
        return str(self.path)


def _scalar(value: Any, path: KeyPath) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise TransformError(f"Value at {path} is a {type(value).__name__}, expected a scalar")


def _as_index(step: str | int) -> int | None:
    if isinstance(step, int):
        return step
    if step.lstrip("-").isdigit():
        return int(step)
    return None


__all__ = ["KeyDataQuery", "KeyPath", "select_items"]
