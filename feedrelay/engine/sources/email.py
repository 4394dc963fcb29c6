"""IMAP mailbox source: one entry per unseen message."""

from __future__ import annotations

import email
import imaplib
from email.header import decode_header, make_header
from email.message import Message as MailMessage
from enum import Enum
from typing import Callable, Iterable

from ...errors import FetchError
from ..entry import Entry, Message
from .base import BaseSource

IMAP_PORT = 993


class ViewMode(str, Enum):
    READ_ONLY = "read_only"
    MARK_AS_READ = "mark_as_read"
    DELETE = "delete"


class EmailSource(BaseSource):
    """Fetch unseen mail from ``INBOX``; delivered mail is optionally marked read or deleted."""

    name = "email"

    def __init__(
        self,
        imap_host: str,
        address: str,
        password: str,
        sender: str | None = None,
        subjects: Iterable[str] = (),
        exclude_subjects: Iterable[str] = (),
        view_mode: ViewMode | str = ViewMode.READ_ONLY,
        port: int = IMAP_PORT,
        connect: Callable[[str, int], imaplib.IMAP4] | None = None,
    ) -> None:
        self.imap_host = imap_host
        self.address = address
        self._password = password
        self.sender = sender
        self.subjects = list(subjects)
        self.exclude_subjects = list(exclude_subjects)
        self.view_mode = ViewMode(view_mode)
        self.port = port
        self._connect = connect or imaplib.IMAP4_SSL

    def search_criteria(self) -> str:
        criteria = ["UNSEEN"]
        if self.sender:
            criteria.append(f'FROM "{self.sender}"')
        criteria.extend(f'SUBJECT "{subject}"' for subject in self.subjects)
        criteria.extend(f'NOT SUBJECT "{subject}"' for subject in self.exclude_subjects)
        return " ".join(criteria)

    def fetch(self) -> list[Entry]:
        try:
            session = self._login()
            try:
                session.select("INBOX", readonly=True)
                status, data = session.uid("SEARCH", None, self.search_criteria())
                if status != "OK":
                    raise FetchError(f"IMAP search failed on {self.imap_host}: {data!r}")
                uids = (data[0] or b"").split()
                entries: list[Entry] = []
                # newest first
                for uid in reversed(uids):
                    status, parts = session.uid("FETCH", uid, "(BODY.PEEK[])")
                    if status != "OK":
                        raise FetchError(f"IMAP fetch of uid {uid!r} failed: {parts!r}")
                    raw = next((part[1] for part in parts if isinstance(part, tuple)), None)
                    if raw is None:
                        continue
                    entries.append(parse_mail(uid.decode(), email.message_from_bytes(raw)))
                return entries
            finally:
                session.logout()
        except (imaplib.IMAP4.error, OSError) as exc:
            raise FetchError(f"IMAP error on {self.imap_host}: {exc}") from exc

    def mark_delivered(self, ids: Iterable[str]) -> None:
        uids = list(ids)
        if self.view_mode is ViewMode.READ_ONLY or not uids:
            return
        try:
            session = self._login()
            try:
                session.select("INBOX")
                uid_set = ",".join(uids)
                if self.view_mode is ViewMode.MARK_AS_READ:
                    session.uid("STORE", uid_set, "+FLAGS.SILENT", "(\\Seen)")
                else:
                    session.uid("STORE", uid_set, "+FLAGS.SILENT", "(\\Deleted)")
                    session.expunge()
            finally:
                session.logout()
        except (imaplib.IMAP4.error, OSError) as exc:
            raise FetchError(f"Could not update delivered mail on {self.imap_host}: {exc}") from exc

    def _login(self) -> imaplib.IMAP4:
        session = self._connect(self.imap_host, self.port)
        session.login(self.address, self._password)
        return session

    def __repr__(self) -> str:
        return f"EmailSource({self.address}@{self.imap_host}, {self.view_mode.value})"


def parse_mail(uid: str, mail: MailMessage) -> Entry:
    """Subject becomes the title, the first ``text/plain`` part the body."""

    subject = mail.get("Subject")
    title = str(make_header(decode_header(subject))) if subject else None
    return Entry(id=uid, message=Message(title=title, body=_plain_body(mail)))


def _plain_body(mail: MailMessage) -> str | None:
    if mail.is_multipart():
        parts = [part for part in mail.walk() if not part.is_multipart()]
        if not parts:
            return None
        part = next((p for p in parts if p.get_content_type() == "text/plain"), parts[0])
    else:
        part = mail
    payload = part.get_payload(decode=True)
    if payload is None:
        return None
    charset = part.get_content_charset() or "utf-8"
    return payload.decode(charset, errors="replace")


__all__ = ["EmailSource", "ViewMode", "parse_mail"]
