"""Pydantic models describing jobs, tasks and global settings."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FieldName = Literal["title", "body", "link", "id", "raw_contents"]


def _check_regex(value: str) -> str:
    try:
        re.compile(value)
    except re.error as exc:
        raise ValueError(f"Invalid regular expression {value!r}: {exc}") from exc
    return value


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------
class ElementQueryConfig(StrictModel):
    """One HTML descent step: exactly one of ``tag``, ``class`` or ``attr``."""

    tag: str | None = None
    class_: str | None = Field(default=None, alias="class")
    attr: dict[str, str] | None = None
    ignore: list["ElementQueryConfig"] = Field(default_factory=list)

    @model_validator(mode="after")
    def _exactly_one_kind(self) -> "ElementQueryConfig":
        kinds = [value for value in (self.tag, self.class_, self.attr) if value is not None]
        if len(kinds) != 1:
            raise ValueError("Element query needs exactly one of tag, class or attr")
        if self.attr is not None and len(self.attr) != 1:
            raise ValueError("attr expects a single {name: value} pair")
        return self


class RegexConfig(StrictModel):
    re: str
    replace_with: str

    @field_validator("re")
    @classmethod
    def _validate_re(cls, value: str) -> str:
        return _check_regex(value)


class HtmlDataQueryConfig(StrictModel):
    query: list[ElementQueryConfig] = Field(default_factory=list)
    attr: str | None = None
    optional: bool = False
    regex: RegexConfig | None = None


class JsonDataQueryConfig(StrictModel):
    query: str | list[str | int]
    optional: bool = False
    regex: RegexConfig | None = None


# ----------------------------------------------------------------------
# Sources
# ----------------------------------------------------------------------
class HttpSourceConfig(StrictModel):
    type: Literal["http"] = "http"
    url: str
    method: Literal["GET", "POST"] = "GET"
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float = 30.0


class FileSourceConfig(StrictModel):
    type: Literal["file"] = "file"
    path: Path


class ExecSourceConfig(StrictModel):
    type: Literal["exec"] = "exec"
    cmd: str
    timeout: float | None = None


class StringSourceConfig(StrictModel):
    type: Literal["string"] = "string"
    text: str


class RedditSourceConfig(StrictModel):
    type: Literal["reddit"] = "reddit"
    subreddit: str
    sort: Literal[
        "latest", "rising", "hot", "top_day", "top_week", "top_month", "top_year", "top_all_time"
    ] = "latest"
    score_threshold: int | None = None


class EmailSourceConfig(StrictModel):
    type: Literal["email"] = "email"
    imap: str
    address: str
    password: str | None = None
    password_env: str | None = None
    sender: str | None = None
    subjects: list[str] = Field(default_factory=list)
    exclude_subjects: list[str] = Field(default_factory=list)
    view_mode: Literal["read_only", "mark_as_read", "delete"] = "read_only"

    @model_validator(mode="after")
    def _needs_password(self) -> "EmailSourceConfig":
        if not (self.password or self.password_env):
            raise ValueError("email source needs password or password_env")
        return self


SourceConfig = Annotated[
    Union[
        HttpSourceConfig,
        FileSourceConfig,
        ExecSourceConfig,
        StringSourceConfig,
        RedditSourceConfig,
        EmailSourceConfig,
    ],
    Field(discriminator="type"),
]


# ----------------------------------------------------------------------
# Sinks
# ----------------------------------------------------------------------
class StdoutSinkConfig(StrictModel):
    type: Literal["stdout"] = "stdout"


class ExecSinkConfig(StrictModel):
    type: Literal["exec"] = "exec"
    cmd: str


class TelegramSinkConfig(StrictModel):
    type: Literal["telegram"] = "telegram"
    chat_id: int | str
    token: str | None = None
    token_env: str = "TELEGRAM_BOT_TOKEN"


class DiscordSinkConfig(StrictModel):
    type: Literal["discord"] = "discord"
    webhook: str | None = None
    webhook_env: str | None = None

    @model_validator(mode="after")
    def _needs_webhook(self) -> "DiscordSinkConfig":
        if not (self.webhook or self.webhook_env):
            raise ValueError("discord sink needs webhook or webhook_env")
        return self


class FileSinkConfig(StrictModel):
    type: Literal["file"] = "file"
    path: Path


SinkConfig = Annotated[
    Union[StdoutSinkConfig, ExecSinkConfig, TelegramSinkConfig, DiscordSinkConfig, FileSinkConfig],
    Field(discriminator="type"),
]


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------
class ReadFilterActionConfig(StrictModel):
    type: Literal["read_filter"] = "read_filter"


class TakeActionConfig(StrictModel):
    type: Literal["take"] = "take"
    from_: Literal["newest", "oldest"] = Field(alias="from")
    num: int = Field(ge=0)


class ContainsActionConfig(StrictModel):
    type: Literal["contains"] = "contains"
    fields: dict[FieldName, str]

    @field_validator("fields")
    @classmethod
    def _check_patterns(cls, value: dict[str, str]) -> dict[str, str]:
        for pattern in value.values():
            _check_regex(pattern)
        return value


class HtmlActionConfig(StrictModel):
    type: Literal["html"] = "html"
    item: list[ElementQueryConfig] | None = None
    title: HtmlDataQueryConfig | None = None
    body: list[HtmlDataQueryConfig] | None = Field(default=None, alias="text")
    id: HtmlDataQueryConfig | None = None
    link: HtmlDataQueryConfig | None = None
    img: HtmlDataQueryConfig | None = None


class JsonActionConfig(StrictModel):
    type: Literal["json"] = "json"
    item: str | list[str | int] | None = None
    title: JsonDataQueryConfig | None = None
    body: list[JsonDataQueryConfig] | None = Field(default=None, alias="text")
    id: JsonDataQueryConfig | None = None
    link: JsonDataQueryConfig | None = None
    img: JsonDataQueryConfig | None = None


class FeedActionConfig(StrictModel):
    type: Literal["feed"] = "feed"


class HttpActionConfig(StrictModel):
    type: Literal["http"] = "http"
    field: FieldName = "link"


class SetActionConfig(StrictModel):
    type: Literal["set"] = "set"
    fields: dict[FieldName, str | list[str] | None]


class UseActionConfig(StrictModel):
    type: Literal["use"] = "use"
    fields: dict[FieldName, FieldName]


class ShortenActionConfig(StrictModel):
    type: Literal["shorten"] = "shorten"
    fields: dict[FieldName, Annotated[int, Field(ge=0)]]


class ReplaceActionConfig(StrictModel):
    type: Literal["replace"] = "replace"
    re: str
    with_: str = Field(alias="with")
    field: FieldName

    @field_validator("re")
    @classmethod
    def _validate_re(cls, value: str) -> str:
        return _check_regex(value)


class ExtractActionConfig(StrictModel):
    type: Literal["extract"] = "extract"
    re: str
    field: FieldName
    passthrough_if_not_found: bool = False

    @field_validator("re")
    @classmethod
    def _validate_re(cls, value: str) -> str:
        return _check_regex(value)


class SingleFieldActionConfig(StrictModel):
    type: Literal["trim", "remove_html", "decode_html", "caps"]
    field: FieldName


class PrintActionConfig(StrictModel):
    type: Literal["print"] = "print"


class SinkActionConfig(StrictModel):
    type: Literal["sink"] = "sink"
    sink: SinkConfig


ActionConfig = Annotated[
    Union[
        ReadFilterActionConfig,
        TakeActionConfig,
        ContainsActionConfig,
        HtmlActionConfig,
        JsonActionConfig,
        FeedActionConfig,
        HttpActionConfig,
        SetActionConfig,
        UseActionConfig,
        ShortenActionConfig,
        ReplaceActionConfig,
        ExtractActionConfig,
        SingleFieldActionConfig,
        PrintActionConfig,
        SinkActionConfig,
    ],
    Field(discriminator="type"),
]

# actions whose short form maps fields to values: ``- set: {title: hello}``
_FIELD_MAP_ACTIONS = {"contains", "set", "use", "shorten"}
# actions whose short form is just the field name: ``- trim: body``
_SINGLE_FIELD_ACTIONS = {"trim", "remove_html", "decode_html", "caps", "http"}


def normalise_action(raw: Any) -> Any:
    """Accept ``feed``, ``{take: {...}}`` and ``{type: take, ...}`` spellings of an action."""

    if isinstance(raw, str):
        return {"type": raw}
    if not isinstance(raw, dict) or "type" in raw or len(raw) != 1:
        return raw
    (name, value), = raw.items()
    if name == "sink":
        return {"type": "sink", "sink": value}
    if name in _FIELD_MAP_ACTIONS:
        return {"type": name, "fields": value}
    if name in _SINGLE_FIELD_ACTIONS and isinstance(value, str):
        return {"type": name, "field": value}
    if value is None:
        return {"type": name}
    if isinstance(value, dict):
        return {"type": name, **value}
    return raw


# ----------------------------------------------------------------------
# Tasks, jobs, global settings
# ----------------------------------------------------------------------
class TaskConfig(StrictModel):
    """One source, its read-filter and its ordered actions."""

    tag: str | None = None
    disabled: bool = False
    source: SourceConfig
    read_filter: Literal["newer_than_read", "not_present_in_read_list"] | None = None
    actions: list[ActionConfig] = Field(default_factory=list)
    sink: SinkConfig | None = None

    @field_validator("actions", mode="before")
    @classmethod
    def _normalise_actions(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [normalise_action(item) for item in value]
        return value

    @model_validator(mode="after")
    def _check_read_filter_marker(self) -> "TaskConfig":
        markers = sum(1 for action in self.actions if isinstance(action, ReadFilterActionConfig))
        if markers > 1:
            raise ValueError("read_filter may appear at most once in actions")
        if markers and self.read_filter is None:
            raise ValueError("actions place a read_filter but the task does not configure one")
        return self


class TriggerConfig(StrictModel):
    every: str | None = None
    at: str | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "TriggerConfig":
        if (self.every is None) == (self.at is None):
            raise ValueError("trigger needs exactly one of every or at")
        return self


class JobConfig(StrictModel):
    """A named group of tasks sharing one trigger (no trigger = run once)."""

    name: str | None = None
    disabled: bool = False
    trigger: TriggerConfig | None = None
    tasks: dict[str, TaskConfig]

    @field_validator("tasks")
    @classmethod
    def _not_empty(cls, value: dict[str, TaskConfig]) -> dict[str, TaskConfig]:
        if not value:
            raise ValueError("a job needs at least one task")
        return value


class GlobalConfig(BaseModel):
    """Global controls shared across jobs."""

    mode: Literal["sequential", "parallel"] = "sequential"
    thread_pool_workers: int = Field(default=8, ge=1)
    state_path: Path = Field(default=Path("data/state.db"))
    log_dir: Path | None = None

    @field_validator("state_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)


__all__ = [
    "ActionConfig",
    "ContainsActionConfig",
    "DiscordSinkConfig",
    "ElementQueryConfig",
    "EmailSourceConfig",
    "ExecSinkConfig",
    "ExecSourceConfig",
    "ExtractActionConfig",
    "FeedActionConfig",
    "FieldName",
    "FileSinkConfig",
    "FileSourceConfig",
    "GlobalConfig",
    "HtmlActionConfig",
    "HtmlDataQueryConfig",
    "HttpActionConfig",
    "HttpSourceConfig",
    "JobConfig",
    "JsonActionConfig",
    "JsonDataQueryConfig",
    "PrintActionConfig",
    "ReadFilterActionConfig",
    "RedditSourceConfig",
    "RegexConfig",
    "ReplaceActionConfig",
    "SetActionConfig",
    "ShortenActionConfig",
    "SingleFieldActionConfig",
    "SinkActionConfig",
    "SinkConfig",
    "SourceConfig",
    "StdoutSinkConfig",
    "StringSourceConfig",
    "TakeActionConfig",
    "TaskConfig",
    "TelegramSinkConfig",
    "TriggerConfig",
    "UseActionConfig",
    "normalise_action",
]
