"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    ActionConfig,
    GlobalConfig,
    JobConfig,
    SinkConfig,
    SourceConfig,
    TaskConfig,
    TriggerConfig,
)

__all__ = [
    "ActionConfig",
    "ConfigLocator",
    "ConfigRepository",
    "GlobalConfig",
    "JobConfig",
    "SinkConfig",
    "SourceConfig",
    "TaskConfig",
    "TriggerConfig",
]
