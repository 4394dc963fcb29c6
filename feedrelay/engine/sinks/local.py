"""Sinks delivering on the local machine: terminal, shell command, JSON-lines file."""

from __future__ import annotations

import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ...errors import SendError
from ..entry import Message
from .base import BaseSink, DeliveryReceipt


class StdoutSink(BaseSink):
    """Print each message as a rich panel."""

    name = "stdout"

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def _send(self, message: Message, tag: str | None) -> DeliveryReceipt:
        lines = [message.render(tag)]
        lines.extend(f"img: {url}" for url in message.img)
        title = f"#{tag}" if tag else None
        body = Text("\n".join(line for line in lines if line))
        self.console.print(Panel(body, title=title, expand=False))
        return DeliveryReceipt(sink=self.name)


class ExecSink(BaseSink):
    """Pipe the rendered message into a shell command's stdin."""

    name = "exec"

    def __init__(self, command: str, timeout: float | None = 60.0) -> None:
        self.command = command
        self.timeout = timeout

    def _send(self, message: Message, tag: str | None) -> DeliveryReceipt:
        try:
            completed = subprocess.run(
                self.command,
                shell=True,
                input=message.render(tag),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SendError(f"Command {self.command!r} failed: {exc}") from exc
        if completed.returncode != 0:
            raise SendError(
                f"Command {self.command!r} exited with {completed.returncode}: {completed.stderr.strip()}"
            )
        return DeliveryReceipt(sink=self.name)

    def __repr__(self) -> str:
        return f"ExecSink({self.command!r})"


class FileSink(BaseSink):
    """Append one JSON object per message to a file."""

    name = "file"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._lock = Lock()

    def _send(self, message: Message, tag: str | None) -> DeliveryReceipt:
        record = {
            "id": message.id,
            "title": message.title,
            "body": message.body,
            "link": message.link,
            "img": list(message.img),
            "tag": tag,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock, self.path.open("a", encoding="utf-8") as stream:
                stream.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise SendError(f"Cannot append to {self.path}: {exc}") from exc
        return DeliveryReceipt(sink=self.name)

    def __repr__(self) -> str:
        return f"FileSink({self.path})"


__all__ = ["ExecSink", "FileSink", "StdoutSink"]
