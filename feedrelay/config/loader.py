"""Configuration loading helpers for feedrelay."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import GlobalConfig, JobConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
JOB_CONFIG_SUFFIX = ".yaml"


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() or ch in "-_" else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, ValueError) as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the feedrelay home directory."""

    project_root: Path | None = None
    data_dir: Path | None = None
    jobs_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("FEEDRELAY_HOME")
        if self.project_root is not None:
            root = Path(self.project_root).expanduser()
        elif env_root:
            root = Path(env_root).expanduser()
        else:
            root = Path.cwd()
        root = root.resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.jobs_dir = (self.data_dir / "jobs").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.jobs_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME

    def resolve(self, path: Path) -> Path:
        """Make ``path`` absolute relative to the home directory."""

        path = Path(path).expanduser()
        return path if path.is_absolute() else (self.project_root / path).resolve()


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            try:
                global_cfg = GlobalConfig.model_validate(_read_file(path))
            except ValidationError as exc:
                raise ConfigError(f"Invalid global configuration {path}:\n{exc}") from exc
        else:
            global_cfg = GlobalConfig()
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        _write_file(path, config.model_dump(mode="json", exclude_none=True))
        self._global_cache = config

    def state_path(self) -> Path:
        return self.locator.resolve(self.load_global_config().state_path)

    def log_dir(self) -> Path:
        configured = self.load_global_config().log_dir
        return self.locator.resolve(configured) if configured else self.locator.logs_dir

    # ------------------------------------------------------------------
    # Job configuration helpers
    # ------------------------------------------------------------------
    def job_path(self, job_name: str) -> Path:
        return self.locator.jobs_dir / f"{_slugify(job_name)}{JOB_CONFIG_SUFFIX}"

    def list_job_files(self) -> Iterable[Path]:
        for path in sorted(self.locator.jobs_dir.glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_jobs(self) -> list[JobConfig]:
        return [self.load_job(path) for path in self.list_job_files()]

    def load_job(self, identifier: str | Path) -> JobConfig:
        path = identifier if isinstance(identifier, Path) else self.job_path(identifier)
        if not path.exists():
            raise ConfigError(f"Job configuration not found: {identifier}")
        payload = _read_file(path)
        payload.setdefault("name", path.stem)
        try:
            return JobConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigError(f"Invalid job configuration {path}:\n{exc}") from exc

    def save_job(self, config: JobConfig) -> Path:
        if not config.name:
            raise ConfigError("Cannot save a job without a name")
        path = self.job_path(config.name)
        _write_file(path, config.model_dump(mode="json", by_alias=True, exclude_none=True))
        return path

    def delete_job(self, job_name: str) -> None:
        path = self.job_path(job_name)
        if path.exists():
            path.unlink()


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository"]
