"""Source contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from ..entry import Entry


class BaseSource(ABC):
    """Produce a batch of raw entries, newest first. Safe to call repeatedly."""

    name = "source"

    @abstractmethod
    def fetch(self) -> list[Entry]:
        """Return the current batch or raise :class:`~feedrelay.errors.FetchError`."""

    def mark_delivered(self, ids: Iterable[str]) -> None:
        """Hook called with the ids delivered during a firing."""

    def close(self) -> None:
        """Release underlying resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


__all__ = ["BaseSource"]
