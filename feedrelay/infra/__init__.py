"""Infrastructure helpers."""

from .storage import MemoryStateStore, SQLiteManager, SQLiteStateStore, StateStore

__all__ = ["MemoryStateStore", "SQLiteManager", "SQLiteStateStore", "StateStore"]
