from __future__ import annotations

import json
from threading import Event

import httpx
import pytest
from conftest import make_entry

from feedrelay.engine.actions import FeedParse, HtmlParse, HttpFollow, JsonParse
from feedrelay.engine.entry import Entry
from feedrelay.engine.query import (
    Class,
    ElementDataQuery,
    ElementQuery,
    KeyDataQuery,
    KeyPath,
    Tag,
)
from feedrelay.errors import FetchError, FiringCancelled

PAGE = """
<html><body>
  <article class="post"><h2>One</h2><a href="https://example.com/1">more</a><p>Body one</p></article>
  <article class="post"><h2>Two</h2><a href="https://example.com/2">more</a></article>
  <article class="post"><a href="https://example.com/3">no title</a></article>
</body></html>
"""

RSS = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>Feed</title>
  <item><title>Newest</title><link>https://example.com/b</link><guid>b</guid><description>B body</description></item>
  <item><title>Older</title><link>https://example.com/a</link><description>A body</description></item>
</channel></rss>
"""


def _html_action(**overrides) -> HtmlParse:
    options = {
        "item": [ElementQuery(Class("post"))],
        "title": ElementDataQuery([ElementQuery(Tag("h2"))]),
        "body": [ElementDataQuery([ElementQuery(Tag("p"))], optional=True)],
        "link": ElementDataQuery([ElementQuery(Tag("a"))], attr="href"),
        "id": ElementDataQuery([ElementQuery(Tag("a"))], attr="href"),
    }
    options.update(overrides)
    return HtmlParse(**options)


def test_html_items_become_entries_and_failing_items_drop(run_context) -> None:
    run = run_context()
    entries = _html_action().apply([Entry(raw_contents=PAGE)], run)
    assert [entry.message.title for entry in entries] == ["One", "Two"]
    assert entries[0].message.body == "Body one"
    assert entries[1].message.body is None
    assert entries[1].effective_id == "https://example.com/2"
    assert run.dropped == 1


def test_html_no_items_is_not_an_error(run_context) -> None:
    action = _html_action(item=[ElementQuery(Class("missing"))])
    run = run_context()
    assert action.apply([Entry(raw_contents=PAGE)], run) == []
    assert run.dropped == 0


def test_html_invalid_link_drops_item(run_context) -> None:
    page = '<article class="post"><h2>Bad</h2><a href="/relative">x</a></article>'
    run = run_context()
    assert _html_action().apply([Entry(raw_contents=page)], run) == []
    assert run.dropped == 1


def test_missing_raw_contents_drops_entry(run_context) -> None:
    run = run_context()
    assert _html_action().apply([make_entry("x")], run) == []
    assert run.dropped == 1


def test_json_items(run_context) -> None:
    document = {"posts": [{"id": 1, "title": "A", "url": "https://example.com/a"}, {"id": 2, "title": "B"}]}
    action = JsonParse(
        item=KeyPath.parse("/posts"),
        title=KeyDataQuery("/title"),
        id=KeyDataQuery("/id"),
        link=KeyDataQuery("/url", optional=True),
    )
    entries = action.apply([Entry(raw_contents=json.dumps(document))], run_context())
    assert [(entry.effective_id, entry.message.title, entry.message.link) for entry in entries] == [
        ("1", "A", "https://example.com/a"),
        ("2", "B", None),
    ]


def test_json_invalid_document_drops_entry(run_context) -> None:
    run = run_context()
    assert JsonParse(title=KeyDataQuery("/t")).apply([Entry(raw_contents="{nope")], run) == []
    assert run.dropped == 1


def test_json_derived_entries_inherit_parent_fields(run_context) -> None:
    parent = make_entry("parent", title="Parent title", raw=json.dumps({"body": "child body"}))
    parent.message.link = "https://example.com/parent"
    entries = JsonParse(body=[KeyDataQuery("/body")]).apply([parent], run_context())
    assert entries[0].message.title == "Parent title"
    assert entries[0].message.link == "https://example.com/parent"
    assert entries[0].message.body == "child body"
    assert entries[0].raw_contents == "child body"


def test_feed_parse(run_context) -> None:
    entries = FeedParse().apply([Entry(raw_contents=RSS)], run_context())
    assert [entry.message.title for entry in entries] == ["Newest", "Older"]
    assert entries[0].effective_id == "b"
    assert entries[1].effective_id == "https://example.com/a"
    assert entries[1].message.body == "A body"


def test_feed_parse_rejects_garbage(run_context) -> None:
    run = run_context()
    assert FeedParse().apply([Entry(raw_contents="<<<not a feed")], run) == []
    assert run.dropped == 1


def test_http_follow_fetches_link(run_context) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, text=f"page at {request.url.path}")))
    entries = [make_entry("1", link="https://example.com/ok"), make_entry("2", link="https://example.com/other")]
    kept = HttpFollow(client=client).apply(entries, run_context())
    assert [entry.raw_contents for entry in kept] == ["page at /ok", "page at /other"]


def test_http_follow_fetch_failure_aborts_batch(run_context) -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    run = run_context()
    with pytest.raises(FetchError):
        HttpFollow(client=client).apply([make_entry("1", link="https://example.com/missing")], run)
    assert run.dropped == 0


def test_http_follow_observes_cancellation(run_context) -> None:
    cancel = Event()
    cancel.set()
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with pytest.raises(FiringCancelled):
        HttpFollow(client=client).apply([make_entry("1", link="https://example.com")], run_context(cancel_event=cancel))
