"""Sink contract shared by every delivery backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ...errors import EmptyMessage
from ..entry import Message


@dataclass(slots=True)
class DeliveryReceipt:
    """What a sink reports after a successful delivery."""

    sink: str
    parts: int = 1
    remote_ids: list[str] = field(default_factory=list)
    delivered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BaseSink(ABC):
    """Deliver messages; contentless messages are rejected before reaching the backend."""

    name = "sink"

    def send(self, message: Message, tag: str | None = None) -> DeliveryReceipt:
        if message.is_empty():
            raise EmptyMessage()
        return self._send(message, tag)

    @abstractmethod
    def _send(self, message: Message, tag: str | None) -> DeliveryReceipt:
        """Deliver a non-empty message or raise :class:`~feedrelay.errors.SendError`."""

    def close(self) -> None:
        """Release underlying resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


def split_text(text: str, limit: int) -> list[str]:
    """Split ``text`` into chunks of at most ``limit`` characters, preferring line breaks."""

    if limit <= 0:
        raise ValueError("limit must be positive")
    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit + 1)
        if cut <= 0:
            cut = remaining.rfind(" ", 0, limit + 1)
        if cut <= 0:
            cut = limit
        chunk = remaining[:cut].rstrip()
        if chunk:
            chunks.append(chunk)
        remaining = remaining[cut:].lstrip("\n ")
    if remaining or not chunks:
        chunks.append(remaining)
    return chunks


__all__ = ["BaseSink", "DeliveryReceipt", "split_text"]
