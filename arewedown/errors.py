"""Error taxonomy and the tagged result of a single check run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ArewedownError(Exception):
    """Base class for errors raised by the watchdog engine."""


class ConfigurationError(ArewedownError):
    """Invalid configuration detected at startup. Startup aborts."""


class PersistenceError(ArewedownError):
    """A status store read/write failed for one watcher."""


class CheckFailure(ArewedownError):
    """Raised by a check plugin when the target is not healthy."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class CheckConfigError(CheckFailure):
    """Raised by a check plugin when required target fields are missing."""


class OutcomeKind(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    CONFIG_ERROR = "config_error"
    FAULT = "fault"


@dataclass(frozen=True)
class CheckOutcome:
    kind: OutcomeKind
    reason: str | None = None

    @property
    def passed(self) -> bool:
        return self.kind is OutcomeKind.PASSED

    @classmethod
    def success(cls) -> "CheckOutcome":
        return cls(kind=OutcomeKind.PASSED)
