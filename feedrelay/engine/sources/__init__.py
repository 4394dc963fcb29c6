"""Concrete sources producing raw entries."""

from .base import BaseSource
from .email import EmailSource, ViewMode
from .http import HttpSource, build_client, fetch_text
from .local import ExecSource, FileSource, StringSource
from .reddit import RedditSort, RedditSource

__all__ = [
    "BaseSource",
    "EmailSource",
    "ExecSource",
    "FileSource",
    "HttpSource",
    "RedditSort",
    "RedditSource",
    "StringSource",
    "ViewMode",
    "build_client",
    "fetch_text",
]
