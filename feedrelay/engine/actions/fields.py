"""Field transforms: mutate one field of every entry, never change cardinality."""

from __future__ import annotations

import html
import random
import re
from abc import abstractmethod
from typing import Sequence

from rich.console import Console
from selectolax.parser import HTMLParser

from ...errors import TransformError
from ..entry import Entry, Field, validate_link
from ..pipeline import RunContext
from ..query.regex import RegexReplace, compile_pattern, extract_captures
from .base import Action, FieldTransform


class SingleFieldTransform(FieldTransform):
    """Read ``field``, compute a new value, write it back (link values are validated)."""

    def __init__(self, field: Field | str) -> None:
        self.field = Field(field)

    def transform(self, entry: Entry) -> None:
        value = self.transform_value(self.field.get(entry))
        if value is not None and self.field is Field.LINK:
            value = validate_link(value)
        self.field.set(entry, value)

    @abstractmethod
    def transform_value(self, value: str | None) -> str | None:
        """New value for the field; ``None`` clears it."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.field.value})"


class Set(SingleFieldTransform):
    """Overwrite a field with a fixed value, a random pick from a list, or nothing."""

    name = "set"

    def __init__(self, field: Field | str, values: str | Sequence[str] | None) -> None:
        super().__init__(field)
        if isinstance(values, str):
            values = [values]
        self.values = list(values) if values else []

    def transform_value(self, value: str | None) -> str | None:
        if not self.values:
            return None
        return random.choice(self.values)


class Use(FieldTransform):
    """Copy ``field`` into ``as_field``."""

    name = "use"

    def __init__(self, field: Field | str, as_field: Field | str) -> None:
        self.field = Field(field)
        self.as_field = Field(as_field)

    def transform(self, entry: Entry) -> None:
        value = self.field.get(entry)
        if value is not None and self.as_field is Field.LINK:
            value = validate_link(value)
        self.as_field.set(entry, value)

    def __repr__(self) -> str:
        return f"Use({self.field.value} -> {self.as_field.value})"


class Shorten(SingleFieldTransform):
    """Cut a field to ``length`` characters and mark the cut with an ellipsis."""

    name = "shorten"

    def __init__(self, field: Field | str, length: int) -> None:
        super().__init__(field)
        if length < 0:
            raise ValueError("shorten length must be >= 0")
        self.length = length

    def transform_value(self, value: str | None) -> str | None:
        if self.length == 0 or value is None:
            return None
        if len(value) <= self.length:
            return value
        return value[: self.length] + "..."


class Trim(SingleFieldTransform):
    """Strip surrounding whitespace from the field and from each of its lines."""

    name = "trim"

    def transform_value(self, value: str | None) -> str | None:
        if value is None:
            return None
        return "\n".join(line.strip() for line in value.strip().splitlines())


class Replace(SingleFieldTransform):
    """Replace the first regex match, leave the field untouched otherwise."""

    name = "replace"

    def __init__(self, field: Field | str, pattern: str, template: str) -> None:
        super().__init__(field)
        self.regex = RegexReplace(pattern, template)

    def transform_value(self, value: str | None) -> str | None:
        if value is None:
            return None
        return self.regex.replace(value)


class Extract(SingleFieldTransform):
    """Replace the field with the concatenation of all capture groups."""

    name = "extract"

    def __init__(self, field: Field | str, pattern: str, passthrough_if_not_found: bool = False) -> None:
        super().__init__(field)
        self.pattern: re.Pattern[str] = compile_pattern(pattern)
        self.passthrough_if_not_found = passthrough_if_not_found

    def transform_value(self, value: str | None) -> str | None:
        if value is None:
            return None
        extracted = extract_captures(self.pattern, value)
        if extracted is not None:
            return extracted
        if self.passthrough_if_not_found:
            return value
        raise TransformError(f"Pattern {self.pattern.pattern!r} did not match field {self.field.value}")


class RemoveHtml(SingleFieldTransform):
    """Keep only the text content of markup."""

    name = "remove_html"

    def transform_value(self, value: str | None) -> str | None:
        if value is None:
            return None
        tree = HTMLParser(value)
        root = tree.body or tree.root
        if root is None:
            return ""
        return root.text(separator="", strip=False).strip()


class DecodeHtml(SingleFieldTransform):
    """Unescape HTML entities."""

    name = "decode_html"

    def transform_value(self, value: str | None) -> str | None:
        return None if value is None else html.unescape(value)


class Caps(SingleFieldTransform):
    name = "caps"

    def transform_value(self, value: str | None) -> str | None:
        return None if value is None else value.upper()


class DebugPrint(Action):
    """Dump every entry to the terminal; the batch passes through untouched."""

    name = "print"

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def apply(self, entries: list[Entry], run: RunContext) -> list[Entry]:
        for entry in entries:
            self.console.rule(f"[bold]{run.task_name}[/bold] · print")
            self.console.print(entry.message.render(run.tag) or "<empty message>", markup=False)
            self.console.print(f"id: {entry.effective_id!r}", markup=False)
            self.console.print(f"raw_contents: {entry.raw_contents!r}", markup=False)
        return entries


__all__ = [
    "Caps",
    "DebugPrint",
    "DecodeHtml",
    "Extract",
    "RemoveHtml",
    "Replace",
    "Set",
    "Shorten",
    "SingleFieldTransform",
    "Trim",
    "Use",
]
