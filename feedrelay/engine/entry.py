"""Entry and Message model flowing through a task pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlparse

from ..errors import TransformError


@dataclass(slots=True)
class Message:
    """User-facing projection of an entry."""

    id: str | None = None
    title: str | None = None
    body: str | None = None
    link: str | None = None
    img: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.title or self.body or self.link or self.img)

    def render(self, tag: str | None = None) -> str:
        """Plain-text rendering used by text based sinks."""

        parts: list[str] = []
        if self.title:
            parts.append(self.title)
        if self.body:
            parts.append(self.body)
        if self.link:
            parts.append(self.link)
        if tag:
            parts.append(f"#{tag}")
        return "\n\n".join(parts)


@dataclass(slots=True)
class Entry:
    """One fetched item moving through the action pipeline."""

    id: str | None = None
    raw_contents: str | None = None
    message: Message = field(default_factory=Message)

    @property
    def effective_id(self) -> str | None:
        """Id used by the read-filter; the message id wins when present."""

        return self.message.id if self.message.id is not None else self.id


class Field(str, Enum):
    """Fields of an entry that field transforms can address."""

    TITLE = "title"
    BODY = "body"
    LINK = "link"
    ID = "id"
    RAW_CONTENTS = "raw_contents"

    def get(self, entry: Entry) -> str | None:
        if self is Field.RAW_CONTENTS:
            return entry.raw_contents
        if self is Field.ID:
            return entry.effective_id
        return getattr(entry.message, self.value)

    def set(self, entry: Entry, value: str | None) -> None:
        if self is Field.RAW_CONTENTS:
            entry.raw_contents = value
        elif self is Field.ID:
            entry.id = value
            entry.message.id = value
        else:
            setattr(entry.message, self.value, value)


def validate_link(value: str) -> str:
    """Return ``value`` if it is an absolute URL, raise :class:`TransformError` otherwise."""

    parsed = urlparse(value)
    if not parsed.scheme or not (parsed.netloc or parsed.scheme in ("mailto", "file")):
        raise TransformError(f"Invalid URL: {value!r}")
    return value


__all__ = ["Entry", "Field", "Message", "validate_link"]
