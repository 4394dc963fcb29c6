"""Persistence for read-filter state."""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Dict

from ..engine.read_filter import ReadFilter, ReadFilterKind, restore_read_filter
from ..errors import StoreError
from ..logging_conf import configure_logging


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS read_filter_state (
                task_name TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.commit()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class StateStore(ABC):
    """Load and save the read-filter state of a task."""

    @abstractmethod
    def load(self, task_name: str, kind: ReadFilterKind | None = None) -> ReadFilter | None:
        """Stored state, or ``None``. A state of a different ``kind`` is discarded."""

    @abstractmethod
    def save(self, task_name: str, state: ReadFilter) -> None:
        """Persist ``state``; raise :class:`StoreError` on failure."""

    @abstractmethod
    def reset(self, task_name: str) -> bool:
        """Forget a task's state; return whether anything was stored."""

    @abstractmethod
    def list_states(self) -> list[tuple[str, str, str]]:
        """``(task_name, kind, updated_at)`` for every stored state."""

    def close(self) -> None:
        """Release underlying resources."""


class SQLiteStateStore(StateStore):
    """State store backed by a single SQLite table."""

    def __init__(self, path: Path, manager: SQLiteManager | None = None) -> None:
        self.path = path
        self.manager = manager or SQLiteManager()
        self.logger = configure_logging().bind(component="state_store")
        self._lock = Lock()
        try:
            self._conn = self.manager.connect(path)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open state database {path}: {exc}") from exc

    def load(self, task_name: str, kind: ReadFilterKind | None = None) -> ReadFilter | None:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT kind, payload FROM read_filter_state WHERE task_name = ?", (task_name,)
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"Cannot load state of {task_name}: {exc}") from exc
        if row is None:
            return None
        if kind is not None and row["kind"] != ReadFilterKind(kind).value:
            self.logger.warning(
                "read_filter_kind_mismatch",
                task=task_name,
                stored=row["kind"],
                configured=ReadFilterKind(kind).value,
            )
            return None
        try:
            return restore_read_filter(row["kind"], json.loads(row["payload"]))
        except (ValueError, TypeError) as exc:
            raise StoreError(f"Corrupt state for {task_name}: {exc}") from exc

    def save(self, task_name: str, state: ReadFilter) -> None:
        payload = json.dumps(state.to_payload(), ensure_ascii=False)
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT OR REPLACE INTO read_filter_state(task_name, kind, payload, updated_at) VALUES (?, ?, ?, ?)",
                    (task_name, state.kind.value, payload, datetime.now(timezone.utc).isoformat()),
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"Cannot save state of {task_name}: {exc}") from exc

    def reset(self, task_name: str) -> bool:
        with self._lock:
            try:
                cursor = self._conn.execute("DELETE FROM read_filter_state WHERE task_name = ?", (task_name,))
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"Cannot reset state of {task_name}: {exc}") from exc
        return cursor.rowcount > 0

    def list_states(self) -> list[tuple[str, str, str]]:
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT task_name, kind, updated_at FROM read_filter_state ORDER BY task_name"
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Cannot list states: {exc}") from exc
        return [(row["task_name"], row["kind"], row["updated_at"]) for row in rows]

    def close(self) -> None:
        self.manager.close_all()


class MemoryStateStore(StateStore):
    """In-process store used by dry runs and tests."""

    def __init__(self) -> None:
        self._states: dict[str, tuple[str, dict, str]] = {}
        self._lock = Lock()

    def load(self, task_name: str, kind: ReadFilterKind | None = None) -> ReadFilter | None:
        with self._lock:
            stored = self._states.get(task_name)
        if stored is None:
            return None
        stored_kind, payload, _ = stored
        if kind is not None and stored_kind != ReadFilterKind(kind).value:
            return None
        return restore_read_filter(stored_kind, payload)

    def save(self, task_name: str, state: ReadFilter) -> None:
        with self._lock:
            self._states[task_name] = (
                state.kind.value,
                state.to_payload(),
                datetime.now(timezone.utc).isoformat(),
            )

    def reset(self, task_name: str) -> bool:
        with self._lock:
            return self._states.pop(task_name, None) is not None

    def list_states(self) -> list[tuple[str, str, str]]:
        with self._lock:
            return [(name, kind, updated) for name, (kind, _, updated) in sorted(self._states.items())]


__all__ = ["MemoryStateStore", "SQLiteManager", "SQLiteStateStore", "StateStore"]
