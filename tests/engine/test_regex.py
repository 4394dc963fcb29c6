from __future__ import annotations

import re

import pytest

from feedrelay.engine.query import RegexReplace, compile_pattern, extract_captures
from feedrelay.errors import ConfigError


def test_substitutes_numbered_group() -> None:
    regex = RegexReplace(r"(\w+)/.*", "Hello, $1!")
    assert regex.apply("HERE/not-here") == "Hello, HERE!"


def test_braced_named_and_literal_dollar() -> None:
    regex = RegexReplace(r"(?P<amount>\d+) (?P<cur>\w+)", "${cur}$$ $amount")
    assert regex.apply("costs 15 USD today") == "costs USD$ 15 today"


def test_no_match() -> None:
    regex = RegexReplace(r"\d+", "#")
    assert regex.apply("no digits") is None
    assert regex.replace("no digits") == "no digits"


def test_unknown_and_unmatched_groups_expand_empty() -> None:
    regex = RegexReplace(r"a(b)?", "[$1|$7]")
    assert regex.apply("xa") == "x[|]"


def test_invalid_pattern_is_config_error() -> None:
    with pytest.raises(ConfigError):
        compile_pattern("(unclosed")


def test_extract_captures_joins_groups() -> None:
    pattern = re.compile(r"(\d+)-(\d+)")
    assert extract_captures(pattern, "call 555-1234 now") == "5551234"
    assert extract_captures(pattern, "nothing") is None
