"""Build runtime jobs from configuration and coordinate their lifecycle."""

from __future__ import annotations

import os
from typing import Iterable

from .config import ConfigLocator, ConfigRepository, GlobalConfig, JobConfig, TaskConfig
from .config import models as cfg
from .engine.actions import (
    Action,
    Caps,
    Contains,
    DebugPrint,
    DecodeHtml,
    Extract,
    FeedParse,
    HtmlParse,
    HttpFollow,
    JsonParse,
    ReadFilterAction,
    RemoveHtml,
    Replace,
    Set,
    Shorten,
    SinkAction,
    Take,
    Trim,
    Use,
)
from .engine.query import (
    Attr,
    Class,
    ElementDataQuery,
    ElementQuery,
    KeyDataQuery,
    KeyPath,
    RegexReplace,
    Tag,
)
from .engine.read_filter import ReadFilter, new_read_filter
from .engine.sinks import BaseSink, DiscordSink, ExecSink, FileSink, StdoutSink, TelegramSink
from .engine.sources import (
    BaseSource,
    EmailSource,
    ExecSource,
    FileSource,
    HttpSource,
    RedditSource,
    StringSource,
)
from .engine.task import Task
from .engine.thread_pool import ThreadPoolManager
from .errors import ConfigError
from .infra.storage import MemoryStateStore, SQLiteStateStore, StateStore
from .logging_conf import configure_logging
from .scheduler import (
    DailyAt,
    Every,
    ExecutionMode,
    Job,
    JobGroup,
    JobRun,
    Trigger,
    parse_duration,
    parse_time_of_day,
)

_SINGLE_FIELD_ACTIONS = {
    "trim": Trim,
    "remove_html": RemoveHtml,
    "decode_html": DecodeHtml,
    "caps": Caps,
}


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------
def build_element_query(config: cfg.ElementQueryConfig) -> ElementQuery:
    if config.tag is not None:
        kind = Tag(config.tag)
    elif config.class_ is not None:
        kind = Class(config.class_)
    else:
        ((name, value),) = (config.attr or {}).items()
        kind = Attr(name, value)
    return ElementQuery(kind, tuple(build_element_query(ignored) for ignored in config.ignore))


def build_regex(config: cfg.RegexConfig | None) -> RegexReplace | None:
    if config is None:
        return None
    return RegexReplace(config.re, config.replace_with)


def build_html_query(config: cfg.HtmlDataQueryConfig | None) -> ElementDataQuery | None:
    if config is None:
        return None
    return ElementDataQuery(
        [build_element_query(step) for step in config.query],
        attr=config.attr,
        optional=config.optional,
        regex=build_regex(config.regex),
    )


def build_json_query(config: cfg.JsonDataQueryConfig | None) -> KeyDataQuery | None:
    if config is None:
        return None
    return KeyDataQuery(config.query, optional=config.optional, regex=build_regex(config.regex))


# ----------------------------------------------------------------------
# Sources and sinks
# ----------------------------------------------------------------------
def _secret(value: str | None, env_name: str | None, what: str) -> str:
    if value:
        return value
    if env_name and os.environ.get(env_name):
        return os.environ[env_name]
    raise ConfigError(f"{what} is not configured (set it inline or via ${env_name})")


def build_source(config: cfg.SourceConfig, locator: ConfigLocator) -> BaseSource:
    if isinstance(config, cfg.HttpSourceConfig):
        return HttpSource(
            config.url,
            method=config.method,
            body=config.body,
            headers=config.headers,
            timeout=config.timeout,
        )
    if isinstance(config, cfg.FileSourceConfig):
        return FileSource(locator.resolve(config.path))
    if isinstance(config, cfg.ExecSourceConfig):
        return ExecSource(config.cmd, timeout=config.timeout)
    if isinstance(config, cfg.StringSourceConfig):
        return StringSource(config.text)
    if isinstance(config, cfg.RedditSourceConfig):
        return RedditSource(config.subreddit, config.sort, config.score_threshold)
    if isinstance(config, cfg.EmailSourceConfig):
        return EmailSource(
            config.imap,
            config.address,
            _secret(config.password, config.password_env, "email password"),
            sender=config.sender,
            subjects=config.subjects,
            exclude_subjects=config.exclude_subjects,
            view_mode=config.view_mode,
        )
    raise ConfigError(f"Unsupported source: {config!r}")


def build_sink(config: cfg.SinkConfig, locator: ConfigLocator, dry_run: bool = False) -> BaseSink:
    if dry_run or isinstance(config, cfg.StdoutSinkConfig):
        return StdoutSink()
    if isinstance(config, cfg.ExecSinkConfig):
        return ExecSink(config.cmd)
    if isinstance(config, cfg.TelegramSinkConfig):
        return TelegramSink(_secret(config.token, config.token_env, "telegram bot token"), config.chat_id)
    if isinstance(config, cfg.DiscordSinkConfig):
        return DiscordSink(_secret(config.webhook, config.webhook_env, "discord webhook"))
    if isinstance(config, cfg.FileSinkConfig):
        return FileSink(locator.resolve(config.path))
    raise ConfigError(f"Unsupported sink: {config!r}")


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------
def build_action(config: cfg.ActionConfig, locator: ConfigLocator, dry_run: bool = False) -> list[Action]:
    """One config entry may expand to several actions (one per configured field)."""

    if isinstance(config, cfg.TakeActionConfig):
        return [Take(config.from_, config.num)]
    if isinstance(config, cfg.ContainsActionConfig):
        return [Contains(field, pattern) for field, pattern in config.fields.items()]
    if isinstance(config, cfg.HtmlActionConfig):
        return [
            HtmlParse(
                item=[build_element_query(step) for step in config.item] if config.item is not None else None,
                title=build_html_query(config.title),
                body=[build_html_query(query) for query in config.body or []],
                id=build_html_query(config.id),
                link=build_html_query(config.link),
                img=build_html_query(config.img),
            )
        ]
    if isinstance(config, cfg.JsonActionConfig):
        return [
            JsonParse(
                item=KeyPath.parse(config.item) if config.item is not None else None,
                title=build_json_query(config.title),
                body=[build_json_query(query) for query in config.body or []],
                id=build_json_query(config.id),
                link=build_json_query(config.link),
                img=build_json_query(config.img),
            )
        ]
    if isinstance(config, cfg.FeedActionConfig):
        return [FeedParse()]
    if isinstance(config, cfg.HttpActionConfig):
        return [HttpFollow(config.field)]
    if isinstance(config, cfg.SetActionConfig):
        return [Set(field, values) for field, values in config.fields.items()]
    if isinstance(config, cfg.UseActionConfig):
        return [Use(field, as_field) for field, as_field in config.fields.items()]
    if isinstance(config, cfg.ShortenActionConfig):
        return [Shorten(field, length) for field, length in config.fields.items()]
    if isinstance(config, cfg.ReplaceActionConfig):
        return [Replace(config.field, config.re, config.with_)]
    if isinstance(config, cfg.ExtractActionConfig):
        return [Extract(config.field, config.re, config.passthrough_if_not_found)]
    if isinstance(config, cfg.SingleFieldActionConfig):
        return [_SINGLE_FIELD_ACTIONS[config.type](config.field)]
    if isinstance(config, cfg.PrintActionConfig):
        return [DebugPrint()]
    if isinstance(config, cfg.SinkActionConfig):
        return [SinkAction(build_sink(config.sink, locator, dry_run))]
    raise ConfigError(f"Unsupported action: {config!r}")


def build_actions(
    config: TaskConfig,
    read_filter: ReadFilter | None,
    locator: ConfigLocator,
    dry_run: bool = False,
) -> list[Action]:
    """Actions in configured order with the read-filter placed before delivery."""

    configured = list(config.actions)
    if config.sink is not None:
        configured.append(cfg.SinkActionConfig(sink=config.sink))

    actions: list[Action] = []
    placed = False
    for action_config in configured:
        if isinstance(action_config, cfg.ReadFilterActionConfig):
            if read_filter is not None:
                actions.append(ReadFilterAction(read_filter))
                placed = True
            continue
        if isinstance(action_config, cfg.SinkActionConfig) and read_filter is not None and not placed:
            actions.append(ReadFilterAction(read_filter))
            placed = True
        actions.extend(build_action(action_config, locator, dry_run))
    if read_filter is not None and not placed:
        actions.append(ReadFilterAction(read_filter))
    return actions


# ----------------------------------------------------------------------
# Tasks, jobs and the group
# ----------------------------------------------------------------------
def qualified_task_name(job_name: str, task_name: str) -> str:
    return job_name if task_name == job_name else f"{job_name}.{task_name}"


def build_task(
    name: str,
    config: TaskConfig,
    store: StateStore | None,
    locator: ConfigLocator,
    dry_run: bool = False,
    default_tag: str | None = None,
) -> Task:
    read_filter = new_read_filter(config.read_filter) if config.read_filter else None
    return Task(
        name,
        build_source(config.source, locator),
        build_actions(config, read_filter, locator, dry_run),
        read_filter=read_filter,
        store=store,
        tag=config.tag or default_tag,
        disabled=config.disabled,
    )


def build_trigger(config: cfg.TriggerConfig | None) -> Trigger | None:
    if config is None:
        return None
    if config.every is not None:
        return Every(parse_duration(config.every))
    return DailyAt(parse_time_of_day(config.at or ""))


def build_job(
    config: JobConfig,
    global_config: GlobalConfig,
    store: StateStore | None,
    locator: ConfigLocator,
    thread_pool: ThreadPoolManager | None = None,
    dry_run: bool = False,
) -> Job:
    name = config.name or "job"
    tasks = [
        build_task(
            qualified_task_name(name, task_name),
            task_config,
            store,
            locator,
            dry_run,
            # a named task tags its messages with its name
            default_tag=task_name if task_name != name else None,
        )
        for task_name, task_config in config.tasks.items()
    ]
    mode = ExecutionMode(global_config.mode)
    return Job(
        name,
        tasks,
        trigger=build_trigger(config.trigger),
        mode=mode,
        thread_pool=thread_pool if mode is ExecutionMode.PARALLEL else None,
        disabled=config.disabled,
    )


def build_job_group(
    repository: ConfigRepository,
    store: StateStore | None = None,
    dry_run: bool = False,
    names: Iterable[str] | None = None,
) -> JobGroup:
    """Turn every configured job (or the ``names`` given) into a :class:`JobGroup`."""

    global_config = repository.load_global_config()
    locator = repository.locator
    if store is None and dry_run:
        store = MemoryStateStore()
    wanted = set(names) if names is not None else None
    configs = [config for config in repository.list_jobs() if wanted is None or config.name in wanted]
    if wanted is not None:
        missing = wanted - {config.name for config in configs}
        if missing:
            raise ConfigError(f"Unknown job(s): {', '.join(sorted(missing))}")
    thread_pool = None
    if global_config.mode == ExecutionMode.PARALLEL.value:
        thread_pool = ThreadPoolManager(global_config.thread_pool_workers)
    jobs = [build_job(config, global_config, store, locator, thread_pool, dry_run) for config in configs]
    return JobGroup(jobs, thread_pool=thread_pool)


class Orchestrator:
    """Central coordinator used by the CLI."""

    def __init__(self, config_repository: ConfigRepository, store: StateStore | None = None) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self._store = store
        self.logger = configure_logging().bind(component="orchestrator")

    @property
    def store(self) -> StateStore:
        if self._store is None:
            self._store = SQLiteStateStore(self.config_repository.state_path())
        return self._store

    def build(self, names: Iterable[str] | None = None, dry_run: bool = False) -> JobGroup:
        store = MemoryStateStore() if dry_run else self.store
        group = build_job_group(self.config_repository, store, dry_run=dry_run, names=names)
        self.logger.info("job_group_built", jobs=list(group.jobs), dry_run=dry_run)
        return group

    def run_once(self, names: Iterable[str] | None = None, dry_run: bool = False) -> dict[str, JobRun]:
        group = self.build(names, dry_run=dry_run)
        try:
            return group.run_once()
        finally:
            group.shutdown()

    def list_jobs(self) -> list[JobConfig]:
        return self.config_repository.list_jobs()

    def task_names(self) -> list[str]:
        names: list[str] = []
        for job in self.list_jobs():
            job_name = job.name or "job"
            names.extend(qualified_task_name(job_name, task_name) for task_name in job.tasks)
        return names

    def view_state(self, task_name: str) -> ReadFilter | None:
        return self.store.load(task_name)

    def reset_state(self, task_name: str) -> bool:
        removed = self.store.reset(task_name)
        self.logger.info("read_filter_reset", task=task_name, removed=removed)
        return removed

    def close(self) -> None:
        if self._store is not None:
            self._store.close()


__all__ = [
    "Orchestrator",
    "build_action",
    "build_actions",
    "build_element_query",
    "build_job",
    "build_job_group",
    "build_sink",
    "build_source",
    "build_task",
    "build_trigger",
    "qualified_task_name",
]
