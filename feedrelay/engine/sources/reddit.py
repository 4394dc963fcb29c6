"""Subreddit listing source using reddit's public JSON endpoints."""

from __future__ import annotations

from enum import Enum
from typing import Any
from urllib.parse import urlparse

import httpx

from ...errors import FetchError
from ..entry import Entry, Message
from .base import BaseSource
from .http import build_client

LISTING_LIMIT = 100


class RedditSort(str, Enum):
    LATEST = "latest"
    RISING = "rising"
    HOT = "hot"
    TOP_DAY = "top_day"
    TOP_WEEK = "top_week"
    TOP_MONTH = "top_month"
    TOP_YEAR = "top_year"
    TOP_ALL_TIME = "top_all_time"

    def endpoint(self) -> tuple[str, dict[str, str]]:
        if self is RedditSort.LATEST:
            return "new", {}
        if self in (RedditSort.RISING, RedditSort.HOT):
            return self.value, {}
        period = {
            RedditSort.TOP_DAY: "day",
            RedditSort.TOP_WEEK: "week",
            RedditSort.TOP_MONTH: "month",
            RedditSort.TOP_YEAR: "year",
            RedditSort.TOP_ALL_TIME: "all",
        }[self]
        return "top", {"t": period}


class RedditSource(BaseSource):
    """One entry per post; pictures become the message image."""

    name = "reddit"

    def __init__(
        self,
        subreddit: str,
        sort: RedditSort | str = RedditSort.LATEST,
        score_threshold: int | None = None,
        client: httpx.Client | None = None,
        base_url: str = "https://www.reddit.com",
    ) -> None:
        self.subreddit = subreddit.removeprefix("r/")
        self.sort = RedditSort(sort)
        self.score_threshold = score_threshold
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or build_client()

    def fetch(self) -> list[Entry]:
        endpoint, params = self.sort.endpoint()
        url = f"{self.base_url}/r/{self.subreddit}/{endpoint}.json"
        try:
            response = self._client.get(url, params={**params, "limit": str(LISTING_LIMIT)})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise FetchError(f"Reddit listing {url} failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"Reddit listing {url} is not valid JSON") from exc
        try:
            children = payload["data"]["children"]
        except (KeyError, TypeError) as exc:
            raise FetchError(f"Unexpected reddit listing shape from {url}") from exc
        entries: list[Entry] = []
        for child in children:
            post = child.get("data") or {}
            if self.score_threshold is not None and int(post.get("score", 0)) < self.score_threshold:
                continue
            entries.append(self._to_entry(post))
        return entries

    def _to_entry(self, post: dict[str, Any]) -> Entry:
        url = post.get("url") or None
        path = urlparse(url).path if url else ""
        is_picture = path.endswith(".jpg") or path.endswith(".png")
        is_video = path.endswith((".mp4", ".gif", ".gifv"))
        if post.get("is_self"):
            body = post.get("selftext") or ""
        elif url and not is_picture:
            body = url
        else:
            body = ""
        body = f"Score: {post.get('score', 0)}\n\n{body}".rstrip()
        img = [url] if url and (is_picture or is_video) else []
        permalink = str(post.get("permalink", "")).lstrip("/")
        return Entry(
            id=str(post["id"]) if post.get("id") is not None else None,
            message=Message(
                title=post.get("title"),
                body=body,
                link=f"https://reddit.com/{permalink}",
                img=img,
            ),
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __repr__(self) -> str:
        return f"RedditSource(r/{self.subreddit}, {self.sort.value})"


__all__ = ["RedditSort", "RedditSource"]
