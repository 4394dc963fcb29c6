"""Entry-to-entries actions: structural parsing and follow-up fetches."""

from __future__ import annotations

import json
from typing import Any

import feedparser
import httpx

from ...errors import EntryError, TransformError
from ..entry import Entry, Field, Message, validate_link
from ..pipeline import RunContext
from ..query import (
    DataQuery,
    ElementQuery,
    KeyPath,
    document_root,
    extract_many,
    select_chain,
    select_items,
)
from ..sources.http import build_client, fetch_text
from .base import EntryToEntries


def _raw_contents(entry: Entry) -> str:
    if entry.raw_contents is None:
        raise TransformError("Raw contents are not set, nothing to parse")
    return entry.raw_contents


def derive_entry(
    parent: Entry,
    *,
    id: str | None = None,
    title: str | None = None,
    body: str | None = None,
    link: str | None = None,
    img: list[str] | None = None,
) -> Entry:
    """New entry whose absent fields fall back to ``parent``'s values."""

    previous = parent.message
    return Entry(
        id=id if id is not None else parent.id,
        raw_contents=body if body is not None else parent.raw_contents,
        message=Message(
            id=id if id is not None else previous.id,
            title=title if title is not None else previous.title,
            body=body if body is not None else previous.body,
            link=link if link is not None else previous.link,
            img=list(img) if img else list(previous.img),
        ),
    )


class StructuredParse(EntryToEntries):
    """Shared per-item extraction for the html and json actions."""

    def __init__(
        self,
        title: DataQuery | None = None,
        body: list[DataQuery] | None = None,
        id: DataQuery | None = None,
        link: DataQuery | None = None,
        img: DataQuery | None = None,
    ) -> None:
        self.title = title
        self.body = list(body or [])
        self.id = id
        self.link = link
        self.img = img

    def extract_entry(self, parent: Entry, node: Any) -> Entry:
        title = self.title.extract_joined(node, "title") if self.title else None
        body = extract_many(self.body, node, "body") if self.body else None
        entry_id = self.id.extract_joined(node, "id", separator="") if self.id else None
        link = self.link.extract_first(node, "link") if self.link else None
        if link is not None:
            link = validate_link(link)
        img = self.img.extract(node, "img") if self.img else None
        if img:
            img = [validate_link(url) for url in img]
        return derive_entry(parent, id=entry_id, title=title, body=body, link=link, img=img)

    def extract_items(self, parent: Entry, items: list[Any], run: RunContext) -> list[Entry]:
        """Build one entry per item; a failing item is dropped, its siblings are kept."""

        entries: list[Entry] = []
        for item in items:
            try:
                entries.append(self.extract_entry(parent, item))
            except EntryError as exc:
                run.drop(parent, exc)
        return entries


class HtmlParse(StructuredParse):
    """Split an HTML page into entries with element queries."""

    name = "html"

    def __init__(self, item: list[ElementQuery] | None = None, **queries: Any) -> None:
        super().__init__(**queries)
        self.item = list(item) if item is not None else None

    def expand(self, entry: Entry, run: RunContext) -> list[Entry]:
        root = document_root(_raw_contents(entry))
        if root is None or not root.text(deep=True).strip():
            run.logger.warning("html_body_empty", task=run.task_name, entry_id=entry.effective_id)
            return []
        items = select_chain(root, self.item) if self.item is not None else [root]
        if not items:
            run.logger.debug("html_no_items", task=run.task_name, entry_id=entry.effective_id)
            return []
        entries = self.extract_items(entry, items, run)
        run.logger.debug("html_parsed", task=run.task_name, items=len(items), entries=len(entries))
        return entries


class JsonParse(StructuredParse):
    """Split a JSON document into entries with key paths."""

    name = "json"

    def __init__(self, item: KeyPath | None = None, **queries: Any) -> None:
        super().__init__(**queries)
        self.item = item

    def expand(self, entry: Entry, run: RunContext) -> list[Entry]:
        try:
            document = json.loads(_raw_contents(entry))
        except ValueError as exc:
            raise TransformError(f"Invalid JSON: {exc}") from exc
        items = select_items(document, self.item) if self.item is not None else [document]
        return self.extract_items(entry, items, run)


class FeedParse(EntryToEntries):
    """Split an RSS/Atom document into one entry per feed item."""

    name = "feed"

    def expand(self, entry: Entry, run: RunContext) -> list[Entry]:
        feed = feedparser.parse(_raw_contents(entry))
        if feed.bozo and not feed.entries:
            raise TransformError(f"Not a valid feed: {feed.get('bozo_exception')}")
        entries: list[Entry] = []
        for item in feed.entries:
            link = item.get("link")
            item_id = item.get("id") or link
            body = item.get("summary")
            entries.append(
                Entry(
                    id=item_id,
                    raw_contents=body,
                    message=Message(
                        id=item_id,
                        title=(item.get("title") or "").strip() or None,
                        body=body,
                        link=link,
                    ),
                )
            )
        run.logger.debug("feed_parsed", task=run.task_name, entries=len(entries))
        return entries


class HttpFollow(EntryToEntries):
    """Fetch the URL held in ``field`` and store the page as raw contents."""

    name = "http"

    def __init__(self, field: Field | str = Field.LINK, client: httpx.Client | None = None) -> None:
        self.field = Field(field)
        self._owns_client = client is None
        self._client = client or build_client()

    def expand(self, entry: Entry, run: RunContext) -> list[Entry]:
        url = self.field.get(entry)
        if url is None:
            raise TransformError(f"No URL in field {self.field.value} to fetch")
        validate_link(url)
        run.checkpoint("follow-up fetch")
        # FetchError aborts the firing so the entry is retried next run
        entry.raw_contents = fetch_text(self._client, url)
        return [entry]

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __repr__(self) -> str:
        return f"HttpFollow({self.field.value})"


__all__ = ["FeedParse", "HtmlParse", "HttpFollow", "JsonParse", "StructuredParse", "derive_entry"]
