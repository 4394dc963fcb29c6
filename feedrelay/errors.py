"""Error taxonomy shared by sources, actions, sinks and the scheduler."""

from __future__ import annotations


class FeedRelayError(Exception):
    """Base class for every error raised by feedrelay."""

    kind = "error"


class ConfigError(FeedRelayError):
    """Configuration could not be turned into runtime objects."""

    kind = "config"


class FetchError(FeedRelayError):
    """A source (or follow-up fetch) was unreachable or returned garbage."""

    kind = "fetch"


class StoreError(FeedRelayError):
    """Read-filter state could not be loaded or persisted."""

    kind = "store"


class FiringCancelled(FeedRelayError):
    """Shutdown was requested while a task firing was in progress."""

    kind = "cancelled"


class EntryError(FeedRelayError):
    """Failure scoped to a single entry; sibling entries keep going."""

    kind = "entry"


class RequiredFieldMissing(EntryError):
    """A non-optional query produced no data."""

    kind = "required_field_missing"

    def __init__(self, field: str, detail: str | None = None) -> None:
        self.field = field
        message = f"Required field {field!r} is missing"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class EmptyMessage(EntryError):
    """A message with no content reached a sink."""

    kind = "empty_message"

    def __init__(self, message: str = "Refusing to send a message without any content") -> None:
        super().__init__(message)


class TransformError(EntryError):
    """An action could not transform an entry."""

    kind = "transform"


class SendError(EntryError):
    """A sink failed to deliver a message."""

    kind = "send"


__all__ = [
    "ConfigError",
    "EmptyMessage",
    "EntryError",
    "FeedRelayError",
    "FetchError",
    "FiringCancelled",
    "RequiredFieldMissing",
    "SendError",
    "StoreError",
    "TransformError",
]
