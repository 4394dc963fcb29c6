"""Engine components running source → actions → read-filter → sink."""

from .entry import Entry, Field, Message
from .pipeline import RunContext, run_pipeline
from .read_filter import DeliveryOutcome, NewerThanRead, NotPresentInReadList, ReadFilter, ReadFilterKind
from .task import Task, TaskResult, TaskState, TaskStatus
from .thread_pool import ThreadPoolManager

__all__ = [
    "DeliveryOutcome",
    "Entry",
    "Field",
    "Message",
    "NewerThanRead",
    "NotPresentInReadList",
    "ReadFilter",
    "ReadFilterKind",
    "RunContext",
    "Task",
    "TaskResult",
    "TaskState",
    "TaskStatus",
    "ThreadPoolManager",
    "run_pipeline",
]
