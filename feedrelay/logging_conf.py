"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
import os
from collections import deque
from pathlib import Path
from typing import Any, Iterable

import structlog

_LOGGING_INITIALISED = False
_LOG_DIR: Path | None = None

MAIN_LOG = "feedrelay.log"
ERROR_LOG = "error.log"
TASKS_DIR = "tasks"
JSON_FORMATTER = "pythonjsonlogger.jsonlogger.JsonFormatter"


def _default_log_dir() -> Path:
    home = os.environ.get("FEEDRELAY_HOME")
    root = Path(home).expanduser() if home else Path.cwd()
    return (root / "logs").resolve()


def current_log_dir() -> Path:
    return _LOG_DIR or _default_log_dir()


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    path.touch(exist_ok=True)
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "formatter": "json",
        "encoding": "utf-8",
    }


def _logging_config(directory: Path, level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSON_FORMATTER, "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
            "main_file": _file_handler(directory / MAIN_LOG, "INFO"),
            "error_file": _file_handler(directory / ERROR_LOG, "ERROR"),
        },
        "loggers": {
            "feedrelay": {
                "handlers": ["console", "main_file", "error_file"],
                "level": level,
                "propagate": False,
            },
            # apscheduler is chatty at INFO
            "apscheduler": {
                "handlers": ["main_file", "error_file"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure structlog and the stdlib handlers once, then return the application logger.

    Later calls reuse the first configuration; ``verbose`` can still raise the
    level to DEBUG.
    """

    global _LOGGING_INITIALISED, _LOG_DIR

    if _LOGGING_INITIALISED:
        if verbose:
            logging.getLogger("feedrelay").setLevel(logging.DEBUG)
        return structlog.get_logger("feedrelay")

    directory = (log_dir or _default_log_dir()).resolve()
    (directory / TASKS_DIR).mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(_logging_config(directory, "DEBUG" if verbose else "INFO"))
    _LOG_DIR = directory

    # JSON rendering happens in the stdlib handlers
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_INITIALISED = True
    return structlog.get_logger("feedrelay")


def task_logger(task_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to a task that also writes to ``logs/tasks/<task>.log``."""

    configure_logging(verbose)
    path = current_log_dir() / TASKS_DIR / f"{task_name}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"feedrelay.task.{task_name}"
    stdlib_logger = logging.getLogger(logger_name)
    attached = {getattr(handler, "baseFilename", None) for handler in stdlib_logger.handlers}
    if str(path) not in attached:
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(logging.INFO)
        root_handlers = logging.getLogger("feedrelay").handlers
        if root_handlers:
            handler.setFormatter(root_handlers[0].formatter)
        stdlib_logger.addHandler(handler)

    return structlog.get_logger(logger_name).bind(task=task_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last ``line_count`` lines of a log file."""

    if line_count <= 0 or not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        return list(deque(stream, maxlen=line_count))


def available_task_logs() -> Iterable[Path]:
    tasks_dir = current_log_dir() / TASKS_DIR
    if not tasks_dir.exists():
        return []
    return sorted(tasks_dir.glob("*.log"))


__all__ = ["available_task_logs", "configure_logging", "current_log_dir", "tail_log", "task_logger"]
