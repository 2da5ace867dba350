"""Notification dispatch and transports."""

from .dispatcher import NotificationDispatcher
from .transports import (
    DeliveryResult,
    SendgridTransport,
    SmtpTransport,
    TelegramTransport,
    Transport,
    select_transport,
    split_telegram_message,
)

__all__ = [
    "DeliveryResult",
    "NotificationDispatcher",
    "SendgridTransport",
    "SmtpTransport",
    "TelegramTransport",
    "Transport",
    "select_transport",
    "split_telegram_message",
]
