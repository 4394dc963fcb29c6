"""Chat sinks: Telegram bot API and Discord webhooks."""

from __future__ import annotations

import time
from typing import Any

import httpx

from ...errors import SendError
from ..entry import Message
from ..sources.http import build_client
from .base import BaseSink, DeliveryReceipt, split_text

TELEGRAM_MESSAGE_LIMIT = 4096
DISCORD_MESSAGE_LIMIT = 2000
MAX_RATE_LIMIT_WAIT = 60.0


class TelegramSink(BaseSink):
    """Send messages to a chat through a bot; long texts are split."""

    name = "telegram"

    def __init__(
        self,
        token: str,
        chat_id: str | int,
        client: httpx.Client | None = None,
        api_url: str = "https://api.telegram.org",
        sleep=time.sleep,
    ) -> None:
        self.chat_id = chat_id
        self._endpoint = f"{api_url.rstrip('/')}/bot{token}"
        self._owns_client = client is None
        self._client = client or build_client()
        self._sleep = sleep

    def _send(self, message: Message, tag: str | None) -> DeliveryReceipt:
        remote_ids: list[str] = []
        text = message.render(tag)
        chunks = split_text(text, TELEGRAM_MESSAGE_LIMIT) if text else []
        for chunk in chunks:
            result = self._call("sendMessage", {"chat_id": self.chat_id, "text": chunk})
            remote_ids.append(str(result.get("message_id", "")))
        for url in message.img:
            result = self._call("sendPhoto", {"chat_id": self.chat_id, "photo": url})
            remote_ids.append(str(result.get("message_id", "")))
        return DeliveryReceipt(sink=self.name, parts=len(remote_ids), remote_ids=remote_ids)

    def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        for _ in range(2):
            try:
                response = self._client.post(f"{self._endpoint}/{method}", json=payload)
                data = response.json()
            except httpx.HTTPError as exc:
                raise SendError(f"Telegram {method} failed: {exc}") from exc
            except ValueError as exc:
                raise SendError(f"Telegram {method} returned invalid JSON") from exc
            if data.get("ok"):
                return data.get("result") or {}
            retry_after = (data.get("parameters") or {}).get("retry_after")
            if response.status_code == 429 and retry_after is not None and retry_after <= MAX_RATE_LIMIT_WAIT:
                self._sleep(float(retry_after))
                continue
            break
        raise SendError(f"Telegram {method} rejected the message: {data.get('description', response.status_code)}")

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __repr__(self) -> str:
        return f"TelegramSink(chat_id={self.chat_id})"


class DiscordSink(BaseSink):
    """Post messages to a Discord webhook."""

    name = "discord"

    def __init__(self, webhook_url: str, client: httpx.Client | None = None) -> None:
        self.webhook_url = webhook_url
        self._owns_client = client is None
        self._client = client or build_client()

    def _send(self, message: Message, tag: str | None) -> DeliveryReceipt:
        text = message.render(tag)
        chunks = split_text(text, DISCORD_MESSAGE_LIMIT) if text else [""]
        for index, chunk in enumerate(chunks):
            payload: dict[str, Any] = {"content": chunk}
            if index == len(chunks) - 1 and message.img:
                payload["embeds"] = [{"image": {"url": url}} for url in message.img[:10]]
            try:
                response = self._client.post(self.webhook_url, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise SendError(f"Discord webhook returned HTTP {exc.response.status_code}") from exc
            except httpx.HTTPError as exc:
                raise SendError(f"Discord webhook failed: {exc}") from exc
        return DeliveryReceipt(sink=self.name, parts=len(chunks))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = ["DISCORD_MESSAGE_LIMIT", "DiscordSink", "TELEGRAM_MESSAGE_LIMIT", "TelegramSink"]
