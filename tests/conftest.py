"""Shared fixtures: in-memory sources and sinks, isolated logging and config homes."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import pytest

from feedrelay.config import ConfigLocator, ConfigRepository
from feedrelay.engine.entry import Entry, Message
from feedrelay.engine.pipeline import RunContext
from feedrelay.engine.sinks.base import BaseSink, DeliveryReceipt
from feedrelay.engine.sources.base import BaseSource
from feedrelay.errors import FetchError, SendError
from feedrelay.logging_conf import configure_logging


@pytest.fixture(scope="session", autouse=True)
def _isolated_logs(tmp_path_factory: pytest.TempPathFactory) -> None:
    configure_logging(log_dir=tmp_path_factory.mktemp("logs"))


def make_entry(
    entry_id: str | None = None,
    title: str | None = None,
    body: str | None = None,
    link: str | None = None,
    raw: str | None = None,
) -> Entry:
    if title is None and body is None and link is None:
        title = f"Entry {entry_id}"
    return Entry(id=entry_id, raw_contents=raw, message=Message(title=title, body=body, link=link))


class ListSource(BaseSource):
    """Return fresh entries for ``ids`` on every fetch (newest first)."""

    name = "list"

    def __init__(self, ids: Iterable[str | None] = ()) -> None:
        self.ids = list(ids)
        self.error: Exception | None = None
        self.calls = 0
        self.marked: list[list[str]] = []

    def fetch(self) -> list[Entry]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [make_entry(entry_id) for entry_id in self.ids]

    def mark_delivered(self, ids: Iterable[str]) -> None:
        self.marked.append(list(ids))


class BrokenSource(ListSource):
    def __init__(self, message: str = "unreachable") -> None:
        super().__init__()
        self.error = FetchError(message)


class RecordingSink(BaseSink):
    """Keep every sent message; titles listed in ``fail_titles`` raise :class:`SendError`."""

    name = "recording"

    def __init__(self, fail_titles: Iterable[str] = ()) -> None:
        self.sent: list[Message] = []
        self.fail_titles = set(fail_titles)

    def _send(self, message: Message, tag: str | None) -> DeliveryReceipt:
        if message.title in self.fail_titles:
            raise SendError(f"refused {message.title}")
        self.sent.append(message)
        return DeliveryReceipt(sink=self.name)

    @property
    def titles(self) -> list[str | None]:
        return [message.title for message in self.sent]


@pytest.fixture
def run_context() -> Callable[..., RunContext]:
    def _builder(task_name: str = "test", **kwargs) -> RunContext:
        return RunContext(task_name, configure_logging().bind(task=task_name), **kwargs)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("FEEDRELAY_HOME", str(tmp_path))
    return ConfigRepository(ConfigLocator(project_root=tmp_path))
