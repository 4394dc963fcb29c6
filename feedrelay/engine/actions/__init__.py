"""Closed set of pipeline actions."""

from .base import Action, EntryToEntries, FieldTransform, FilterAction
from .fields import Caps, DebugPrint, DecodeHtml, Extract, RemoveHtml, Replace, Set, Shorten, Trim, Use
from .filters import Contains, ReadFilterAction, Take, TakeFrom
from .parse import FeedParse, HtmlParse, HttpFollow, JsonParse
from .sink import SinkAction, dedup_batch

__all__ = [
    "Action",
    "Caps",
    "Contains",
    "DebugPrint",
    "DecodeHtml",
    "EntryToEntries",
    "Extract",
    "FeedParse",
    "FieldTransform",
    "FilterAction",
    "HtmlParse",
    "HttpFollow",
    "JsonParse",
    "ReadFilterAction",
    "RemoveHtml",
    "Replace",
    "Set",
    "Shorten",
    "SinkAction",
    "Take",
    "TakeFrom",
    "Trim",
    "Use",
    "dedup_batch",
]
