"""Durable status storage."""

from .status_store import (
    STATUS_DOWN,
    STATUS_UNKNOWN,
    STATUS_UP,
    HistoryEntry,
    StatusRecord,
    StatusStore,
)

__all__ = [
    "STATUS_DOWN",
    "STATUS_UNKNOWN",
    "STATUS_UP",
    "HistoryEntry",
    "StatusRecord",
    "StatusStore",
]
