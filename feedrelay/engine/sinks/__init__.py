"""Delivery backends."""

from .base import BaseSink, DeliveryReceipt, split_text
from .chat import DISCORD_MESSAGE_LIMIT, TELEGRAM_MESSAGE_LIMIT, DiscordSink, TelegramSink
from .local import ExecSink, FileSink, StdoutSink

__all__ = [
    "BaseSink",
    "DISCORD_MESSAGE_LIMIT",
    "DeliveryReceipt",
    "DiscordSink",
    "ExecSink",
    "FileSink",
    "StdoutSink",
    "TELEGRAM_MESSAGE_LIMIT",
    "TelegramSink",
    "split_text",
]
