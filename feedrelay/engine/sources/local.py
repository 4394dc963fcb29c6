"""Sources that read from the local machine: files, shell commands and literal strings."""

from __future__ import annotations

import subprocess
from pathlib import Path

from ...errors import FetchError
from ..entry import Entry
from .base import BaseSource


class FileSource(BaseSource):
    name = "file"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def fetch(self) -> list[Entry]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FetchError(f"Cannot read {self.path}: {exc}") from exc
        return [Entry(raw_contents=text)]

    def __repr__(self) -> str:
        return f"FileSource({self.path})"


class ExecSource(BaseSource):
    """Run a shell command; its stdout becomes the raw contents."""

    name = "exec"

    def __init__(self, command: str, timeout: float | None = None) -> None:
        self.command = command
        self.timeout = timeout

    def fetch(self) -> list[Entry]:
        try:
            completed = subprocess.run(
                self.command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise FetchError(f"Command {self.command!r} failed: {exc}") from exc
        if completed.returncode != 0:
            stderr = completed.stderr.strip()
            raise FetchError(f"Command {self.command!r} exited with {completed.returncode}: {stderr}")
        return [Entry(raw_contents=completed.stdout)]

    def __repr__(self) -> str:
        return f"ExecSource({self.command!r})"


class StringSource(BaseSource):
    name = "string"

    def __init__(self, text: str) -> None:
        self.text = text

    def fetch(self) -> list[Entry]:
        return [Entry(raw_contents=self.text)]


__all__ = ["ExecSource", "FileSource", "StringSource"]
