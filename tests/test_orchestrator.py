from __future__ import annotations

import pytest

from feedrelay.config import ConfigRepository, GlobalConfig, JobConfig, TriggerConfig
from feedrelay.config.models import TaskConfig
from feedrelay.engine.actions import Contains, FeedParse, ReadFilterAction, Set, SinkAction, Take
from feedrelay.engine.read_filter import new_read_filter
from feedrelay.engine.sinks import StdoutSink, TelegramSink
from feedrelay.errors import ConfigError
from feedrelay.infra.storage import MemoryStateStore
from feedrelay.orchestrator import Orchestrator, build_actions, build_job_group, build_trigger
from feedrelay.scheduler import DailyAt, Every, ExecutionMode


def _task(**overrides) -> TaskConfig:
    payload = {"source": {"type": "string", "text": "<p>hi</p>"}}
    payload.update(overrides)
    return TaskConfig.model_validate(payload)


def _save_job(repository: ConfigRepository, name: str, tasks: dict, trigger: dict | None = None) -> None:
    payload = {"name": name, "tasks": tasks}
    if trigger is not None:
        payload["trigger"] = trigger
    repository.save_job(JobConfig.model_validate(payload))


def test_read_filter_goes_before_sink_by_default(temp_config_repository) -> None:
    config = _task(read_filter="newer_than_read", actions=["feed", {"take": {"from": "newest", "num": 3}}],
                   sink={"type": "stdout"})
    read_filter = new_read_filter("newer_than_read")
    actions = build_actions(config, read_filter, temp_config_repository.locator)
    assert [type(action) for action in actions] == [FeedParse, Take, ReadFilterAction, SinkAction]
    assert actions[2].read_filter is read_filter


def test_read_filter_marker_position_is_respected(temp_config_repository) -> None:
    config = _task(
        read_filter="not_present_in_read_list",
        actions=["feed", "read_filter", {"contains": {"title": "a", "body": "b"}}, {"set": {"title": "x"}}],
    )
    actions = build_actions(config, new_read_filter(config.read_filter), temp_config_repository.locator)
    assert [type(action) for action in actions] == [FeedParse, ReadFilterAction, Contains, Contains, Set]


def test_secrets_come_from_environment(temp_config_repository, monkeypatch: pytest.MonkeyPatch) -> None:
    config = _task(sink={"type": "telegram", "chat_id": 5})
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    with pytest.raises(ConfigError, match="TELEGRAM_BOT_TOKEN"):
        build_actions(config, None, temp_config_repository.locator)

    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    actions = build_actions(config, None, temp_config_repository.locator)
    assert isinstance(actions[-1].sink, TelegramSink)

    dry = build_actions(config, None, temp_config_repository.locator, dry_run=True)
    assert isinstance(dry[-1].sink, StdoutSink)


def test_build_trigger() -> None:
    assert build_trigger(None) is None
    assert isinstance(build_trigger(TriggerConfig(every="1h")), Every)
    assert isinstance(build_trigger(TriggerConfig(at="07:30")), DailyAt)
    with pytest.raises(ConfigError):
        build_trigger(TriggerConfig(every="often"))


def test_build_job_group_names_tasks_by_job(temp_config_repository) -> None:
    _save_job(
        temp_config_repository,
        "news",
        {"news": {"source": {"type": "string", "text": "x"}}, "extra": {"source": {"type": "string", "text": "y"}}},
        trigger={"every": "10m"},
    )
    _save_job(temp_config_repository, "other", {"only": {"source": {"type": "string", "text": "z"}}})
    group = build_job_group(temp_config_repository, MemoryStateStore())
    assert sorted(group.jobs) == ["news", "other"]
    assert [task.name for task in group.jobs["news"].tasks] == ["news", "news.extra"]
    assert group.jobs["other"].trigger is None

    with pytest.raises(ConfigError):
        build_job_group(temp_config_repository, names=["nope"])


def test_named_tasks_default_their_tag_to_the_task_name(temp_config_repository) -> None:
    _save_job(
        temp_config_repository,
        "news",
        {
            "news": {"source": {"type": "string", "text": "x"}},
            "sports": {"source": {"type": "string", "text": "y"}},
            "weather": {"source": {"type": "string", "text": "z"}, "tag": "forecast"},
        },
    )
    group = build_job_group(temp_config_repository, MemoryStateStore())
    assert [task.tag for task in group.jobs["news"].tasks] == [None, "sports", "forecast"]


def test_parallel_mode_gets_thread_pool(temp_config_repository) -> None:
    temp_config_repository.save_global_config(GlobalConfig(mode="parallel", thread_pool_workers=2))
    _save_job(temp_config_repository, "p", {"t": {"source": {"type": "string", "text": "x"}}})
    group = build_job_group(temp_config_repository, MemoryStateStore())
    try:
        assert group.jobs["p"].mode is ExecutionMode.PARALLEL
        assert group.thread_pool is not None
    finally:
        group.shutdown()


def test_orchestrator_runs_and_persists_state(temp_config_repository, tmp_path) -> None:
    output = tmp_path / "out.jsonl"
    _save_job(
        temp_config_repository,
        "digest",
        {
            "digest": {
                "source": {"type": "string", "text": '{"items": [{"id": 1, "t": "one"}, {"id": 2, "t": "two"}]}'},
                "read_filter": "not_present_in_read_list",
                "actions": [{"json": {"item": "/items", "id": {"query": "/id"}, "title": {"query": "/t"}}}],
                "sink": {"type": "file", "path": str(output)},
            }
        },
    )
    orchestrator = Orchestrator(temp_config_repository)
    try:
        runs = orchestrator.run_once()
        assert runs["digest"].delivered == 2
        assert orchestrator.run_once()["digest"].delivered == 0
        assert orchestrator.view_state("digest").seen == {"1", "2"}
        assert orchestrator.reset_state("digest") is True
        assert orchestrator.task_names() == ["digest"]
    finally:
        orchestrator.close()
    assert len(output.read_text(encoding="utf-8").splitlines()) == 2


def test_dry_run_does_not_touch_state(temp_config_repository) -> None:
    _save_job(
        temp_config_repository,
        "dry",
        {"dry": {"source": {"type": "string", "text": "hello"}, "read_filter": "newer_than_read",
                 "sink": {"type": "exec", "cmd": "exit 1"}}},
    )
    orchestrator = Orchestrator(temp_config_repository)
    try:
        runs = orchestrator.run_once(dry_run=True)
        assert runs["dry"].delivered == 1
        assert orchestrator.store.list_states() == []
    finally:
        orchestrator.close()
