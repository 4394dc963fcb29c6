from __future__ import annotations

import pytest

from feedrelay.engine.query import (
    Attr,
    Class,
    ElementDataQuery,
    ElementQuery,
    RegexReplace,
    Tag,
    document_root,
    select_chain,
)
from feedrelay.errors import RequiredFieldMissing

PAGE = """
<html><body>
  <div class="post">
    <h2>First</h2>
    <a href="https://example.com/1">read</a>
    <p class="text">Hello</p>
    <p class="text ad">Buy now</p>
  </div>
  <div class="post">
    <h2>Second</h2>
    <a href="https://example.com/2">read</a>
  </div>
  <div><b id="this-attr">world</b></div>
</body></html>
"""


def test_chain_descends_into_previous_matches() -> None:
    root = document_root(PAGE)
    nodes = select_chain(root, [ElementQuery(Tag("div")), ElementQuery(Attr("id", "this-attr"))])
    assert [node.text() for node in nodes] == ["world"]


def test_ignore_drops_matching_candidates() -> None:
    root = document_root(PAGE)
    query = ElementDataQuery([ElementQuery(Class("text"), ignore=(ElementQuery(Class("ad")),))])
    assert query.extract(root, "body") == ["Hello"]


def test_attribute_location() -> None:
    root = document_root(PAGE)
    posts = select_chain(root, [ElementQuery(Class("post"))])
    query = ElementDataQuery([ElementQuery(Tag("a"))], attr="href")
    assert [query.extract_first(post, "link") for post in posts] == [
        "https://example.com/1",
        "https://example.com/2",
    ]


def test_optional_query_without_match_is_absent() -> None:
    second_post = select_chain(document_root(PAGE), [ElementQuery(Class("post"))])[1]
    query = ElementDataQuery([ElementQuery(Class("text"))], optional=True)
    assert query.extract(second_post, "body") is None


def test_required_query_without_match_raises() -> None:
    second_post = select_chain(document_root(PAGE), [ElementQuery(Class("post"))])[1]
    query = ElementDataQuery([ElementQuery(Class("text"))])
    with pytest.raises(RequiredFieldMissing) as excinfo:
        query.extract(second_post, "body")
    assert excinfo.value.field == "body"


def test_regex_post_process_and_miss() -> None:
    root = document_root(PAGE)
    titles = ElementDataQuery([ElementQuery(Tag("h2"))], regex=RegexReplace(r"^F(\w+)", "f$1"))
    assert titles.extract(root, "title") == ["first"]

    strict = ElementDataQuery([ElementQuery(Tag("h2"))], regex=RegexReplace(r"^Z", "z"))
    with pytest.raises(RequiredFieldMissing):
        strict.extract(root, "title")


def test_multiple_matches_join() -> None:
    root = document_root(PAGE)
    query = ElementDataQuery([ElementQuery(Tag("h2"))])
    assert query.extract_joined(root, "title") == "First\n\nSecond"
