"""Tree descent over HTML documents using selectolax.

An element query is a chain of :class:`ElementQuery` steps. Every step
searches the descendants of the nodes selected by the previous step and
drops candidates matched by its ``ignore`` sub-queries.

Example::

    [ElementQuery(Tag("div")), ElementQuery(Attr("id", "this-attr"))]

matches ``<b id="this-attr">`` in ``<div><b id="this-attr">world</b></div>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from selectolax.parser import HTMLParser, Node

from .base import DataQuery
from .regex import RegexReplace


@dataclass(frozen=True, slots=True)
class Tag:
    name: str

    def css(self) -> str:
        return self.name

    def matches(self, node: Node) -> bool:
        return (node.tag or "").lower() == self.name.lower()


@dataclass(frozen=True, slots=True)
class Class:
    name: str

    def css(self) -> str:
        return f'[class~="{_escape(self.name)}"]'

    def matches(self, node: Node) -> bool:
        classes = (node.attributes.get("class") or "").split()
        return self.name in classes


@dataclass(frozen=True, slots=True)
class Attr:
    name: str
    value: str

    def css(self) -> str:
        return f'[{self.name}="{_escape(self.value)}"]'

    def matches(self, node: Node) -> bool:
        return node.attributes.get(self.name) == self.value


ElementKind = Union[Tag, Class, Attr]


@dataclass(frozen=True, slots=True)
class ElementQuery:
    """One descent step; ``ignore`` is itself a list of element queries."""

    kind: ElementKind
    ignore: tuple["ElementQuery", ...] = ()

    def matches(self, node: Node) -> bool:
        if not self.kind.matches(node):
            return False
        return not any(ignored.matches(node) for ignored in self.ignore)

    def select(self, node: Node) -> list[Node]:
        found = node.css(self.kind.css())
        return [candidate for candidate in found if not self._ignored(candidate)]

    def _ignored(self, node: Node) -> bool:
        return any(ignored.matches(node) for ignored in self.ignore)


def select_chain(root: Node, chain: Iterable[ElementQuery]) -> list[Node]:
    """Apply every step of ``chain`` in order; an empty chain selects ``root``."""

    nodes = [root]
    for step in chain:
        selected: list[Node] = []
        for node in nodes:
            selected.extend(step.select(node))
        nodes = selected
        if not nodes:
            break
    return nodes


def document_root(raw_html: str) -> Node:
    """Return ``<body>`` when present, otherwise the document root."""

    tree = HTMLParser(raw_html)
    return tree.body or tree.root


class ElementDataQuery(DataQuery):
    """Element query plus the location of the data inside matched elements."""

    def __init__(
        self,
        query: list[ElementQuery],
        attr: str | None = None,
        optional: bool = False,
        regex: RegexReplace | None = None,
    ) -> None:
        super().__init__(optional=optional, regex=regex)
        self.query = list(query)
        self.attr = attr

    def locate(self, node: Node) -> list[str]:
        values: list[str] = []
        for element in select_chain(node, self.query):
            if self.attr is None:
                values.append(element.text(deep=True, separator="", strip=False))
                continue
            value = element.attributes.get(self.attr)
            if value is not None:
                values.append(value)
        return values

    def describe(self) -> str:
        steps = " > ".join(_describe_step(step) for step in self.query) or "<root>"
        location = f"@{self.attr}" if self.attr else "text"
        return f"{steps} ({location})"


def _describe_step(step: ElementQuery) -> str:
    kind = step.kind
    if isinstance(kind, Tag):
        label = kind.name
    elif isinstance(kind, Class):
        label = f".{kind.name}"
    else:
        label = f"[{kind.name}={kind.value}]"
    if step.ignore:
        label += " !(" + ", ".join(_describe_step(ignored) for ignored in step.ignore) + ")"
    return label


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


__all__ = [
    "Attr",
    "Class",
    "ElementDataQuery",
    "ElementKind",
    "ElementQuery",
    "Tag",
    "document_root",
    "select_chain",
]
