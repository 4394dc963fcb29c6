from __future__ import annotations

import json

import httpx
import pytest
from rich.console import Console

from feedrelay.engine.entry import Message
from feedrelay.engine.sinks import (
    DISCORD_MESSAGE_LIMIT,
    DiscordSink,
    ExecSink,
    FileSink,
    StdoutSink,
    TelegramSink,
    split_text,
)
from feedrelay.errors import EmptyMessage, SendError


def test_split_prefers_line_breaks() -> None:
    text = "a" * 6 + "\n" + "b" * 6
    assert split_text(text, 10) == ["aaaaaa", "bbbbbb"]
    assert split_text("short", 10) == ["short"]
    assert split_text("x" * 25, 10) == ["x" * 10, "x" * 10, "x" * 5]
    assert split_text("   \n" + "y" * 15, 10) == ["y" * 10, "y" * 5]


def test_empty_message_is_rejected() -> None:
    with pytest.raises(EmptyMessage):
        StdoutSink(Console(record=True)).send(Message())


def test_stdout_sink_renders_tag() -> None:
    console = Console(record=True, width=80)
    StdoutSink(console).send(Message(title="Hello", link="https://example.com"), tag="news")
    output = console.export_text()
    assert "Hello" in output
    assert "#news" in output


def test_file_sink_appends_json_lines(tmp_path) -> None:
    path = tmp_path / "out" / "messages.jsonl"
    sink = FileSink(path)
    sink.send(Message(id="1", title="one"))
    sink.send(Message(id="2", body="two", img=["https://example.com/a.png"]), tag="t")
    records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [record["id"] for record in records] == ["1", "2"]
    assert records[1]["img"] == ["https://example.com/a.png"]
    assert records[1]["tag"] == "t"


def test_exec_sink_pipes_message(tmp_path) -> None:
    target = tmp_path / "received.txt"
    ExecSink(f"cat > '{target}'").send(Message(title="piped"))
    assert target.read_text(encoding="utf-8") == "piped"


def test_exec_sink_failure() -> None:
    with pytest.raises(SendError):
        ExecSink("exit 3").send(Message(title="x"))


def test_telegram_sends_text_then_photos() -> None:
    calls: list[tuple[str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        calls.append((method, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True, "result": {"message_id": len(calls)}})

    sink = TelegramSink("TOKEN", 42, client=httpx.Client(transport=httpx.MockTransport(handler)))
    receipt = sink.send(Message(title="Title", img=["https://example.com/a.jpg"]), tag="feed")
    assert [method for method, _ in calls] == ["sendMessage", "sendPhoto"]
    assert calls[0][1] == {"chat_id": 42, "text": "Title\n\n#feed"}
    assert calls[1][1]["photo"] == "https://example.com/a.jpg"
    assert receipt.parts == 2
    assert receipt.remote_ids == ["1", "2"]


def test_telegram_retries_once_after_rate_limit() -> None:
    responses = [
        httpx.Response(429, json={"ok": False, "description": "Too Many Requests", "parameters": {"retry_after": 3}}),
        httpx.Response(200, json={"ok": True, "result": {"message_id": 9}}),
    ]
    slept: list[float] = []
    client = httpx.Client(transport=httpx.MockTransport(lambda request: responses.pop(0)))
    sink = TelegramSink("TOKEN", "@channel", client=client, sleep=slept.append)
    assert sink.send(Message(body="hi")).remote_ids == ["9"]
    assert slept == [3.0]


def test_telegram_rejection_is_send_error() -> None:
    client = httpx.Client(
        transport=httpx.MockTransport(
            lambda request: httpx.Response(400, json={"ok": False, "description": "chat not found"})
        )
    )
    with pytest.raises(SendError, match="chat not found"):
        TelegramSink("TOKEN", 1, client=client).send(Message(body="hi"))


def test_discord_splits_and_embeds_images_on_last_chunk() -> None:
    payloads: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        payloads.append(json.loads(request.content))
        return httpx.Response(204)

    sink = DiscordSink("https://discord.test/webhook", client=httpx.Client(transport=httpx.MockTransport(handler)))
    body = "line\n" * (DISCORD_MESSAGE_LIMIT // 3)
    receipt = sink.send(Message(body=body, img=["https://example.com/pic.png"]))
    assert receipt.parts == len(payloads) > 1
    assert all(len(payload["content"]) <= DISCORD_MESSAGE_LIMIT for payload in payloads)
    assert "embeds" not in payloads[0]
    assert payloads[-1]["embeds"] == [{"image": {"url": "https://example.com/pic.png"}}]


def test_discord_http_error() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    with pytest.raises(SendError):
        DiscordSink("https://discord.test/webhook", client=client).send(Message(title="x"))
