"""Resolve watcher recipient names against the recipient directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import structlog

from .config import RecipientConfig
from .errors import ConfigurationError


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Recipient:
    name: str
    address: str
    channels: frozenset[str] = field(default_factory=lambda: frozenset({"email"}))

    def accepts(self, channel: str) -> bool:
        return channel in self.channels


def parse_recipient_names(value: Any) -> list[str]:
    """Split a comma-separated recipient string, dropping empty tokens."""
    if value is None:
        return []
    if not isinstance(value, str):
        raise ConfigurationError(f"recipients list must be a string, got {type(value).__name__}")
    return [part.strip() for part in value.split(",") if part.strip()]


def resolve_recipients(
    value: Any,
    directory: Mapping[str, RecipientConfig],
    *,
    watcher: str = "",
) -> list[Recipient]:
    """
    Resolve recipient names to Recipient records.

    Names missing from the directory are configuration skew, not a fault:
    they are logged and left out of the result.
    """
    resolved: list[Recipient] = []
    for name in parse_recipient_names(value):
        entry = directory.get(name)
        if entry is None:
            logger.warning(
                "Recipient could not be matched to a recipient in settings",
                recipient=name,
                watcher=watcher,
            )
            continue
        resolved.append(Recipient(name=name, address=entry.address, channels=frozenset(entry.channels)))
    return resolved
