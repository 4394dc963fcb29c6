"""HTTP source backed by httpx."""

from __future__ import annotations

from typing import Any, Literal

import httpx

from ...errors import FetchError
from ..entry import Entry, Message
from .base import BaseSource

DEFAULT_TIMEOUT = 30.0
DEFAULT_HEADERS = {"User-Agent": "feedrelay/0.1"}


def build_client(timeout: float = DEFAULT_TIMEOUT, headers: dict[str, str] | None = None) -> httpx.Client:
    merged = dict(DEFAULT_HEADERS)
    if headers:
        merged.update(headers)
    return httpx.Client(timeout=timeout, follow_redirects=True, headers=merged)


def fetch_text(
    client: httpx.Client,
    url: str,
    method: str = "GET",
    body: Any | None = None,
) -> str:
    """Perform a request and return the decoded body, raising :class:`FetchError` on failure."""

    try:
        if method == "POST":
            response = client.post(url, json=body) if isinstance(body, (dict, list)) else client.post(url, content=body)
        else:
            response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(f"{method} {url} returned HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"{method} {url} failed: {exc}") from exc
    return response.text


class HttpSource(BaseSource):
    """Fetch one page; its body becomes the raw contents of a single entry."""

    name = "http"

    def __init__(
        self,
        url: str,
        method: Literal["GET", "POST"] = "GET",
        body: Any | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self.method = method
        self.body = body
        self._owns_client = client is None
        self._client = client or build_client(timeout, headers)

    def fetch(self) -> list[Entry]:
        text = fetch_text(self._client, self.url, self.method, self.body)
        return [Entry(raw_contents=text, message=Message(link=self.url))]

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __repr__(self) -> str:
        return f"HttpSource({self.method} {self.url})"


__all__ = ["DEFAULT_TIMEOUT", "HttpSource", "build_client", "fetch_text"]
