"""Structural extraction engine shared by the html and json actions."""

from .base import DataQuery, extract_many
from .element import Attr, Class, ElementDataQuery, ElementQuery, Tag, document_root, select_chain
from .keyed import KeyDataQuery, KeyPath, select_items
from .regex import RegexReplace, compile_pattern, extract_captures

__all__ = [
    "Attr",
    "Class",
    "DataQuery",
    "ElementDataQuery",
    "ElementQuery",
    "KeyDataQuery",
    "KeyPath",
    "RegexReplace",
    "Tag",
    "compile_pattern",
    "document_root",
    "extract_captures",
    "extract_many",
    "select_chain",
    "select_items",
]
