"""Scheduling of jobs and their triggers."""

from .job import ExecutionMode, Job, JobRun
from .job_group import JobGroup
from .triggers import DailyAt, Every, Trigger, parse_duration, parse_time_of_day

__all__ = [
    "DailyAt",
    "Every",
    "ExecutionMode",
    "Job",
    "JobGroup",
    "JobRun",
    "Trigger",
    "parse_duration",
    "parse_time_of_day",
]
