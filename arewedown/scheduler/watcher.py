"""A single scheduled health check and its live state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

from ..checks import CheckPlugin, run_check
from ..config import WatcherConfig
from ..errors import PersistenceError
from ..notifications import NotificationDispatcher
from ..recipients import Recipient
from ..store import STATUS_DOWN, STATUS_UNKNOWN, STATUS_UP, StatusStore
from .job_scheduler import Scheduler


logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WatcherRuntimeState:
    """Mutated only by the owning watcher's tick; read by the API."""

    busy: bool = False
    is_passing: bool = False
    error_message: Optional[str] = "Checking has not run yet"
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    status: str = STATUS_UNKNOWN


class Watcher:
    """Runs one check on its own schedule and records/notifies status transitions."""

    def __init__(
        self,
        config: WatcherConfig,
        *,
        plugin: CheckPlugin,
        store: StatusStore,
        dispatcher: NotificationDispatcher,
        recipients: list[Recipient],
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config
        self.plugin = plugin
        self.store = store
        self.dispatcher = dispatcher
        self.recipients = list(recipients)
        self.scheduler = scheduler
        self.clock = clock
        self.state = WatcherRuntimeState()
        self.handle: Optional[str] = None
        self.log = logger.bind(watcher=config.name)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def safe_name(self) -> str:
        return self.config.safe_name

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def start(self) -> None:
        if self.scheduler is None:
            raise RuntimeError(f"Watcher {self.name} has no scheduler")
        self.log.info("Starting watcher", interval=self.config.interval, test=self.config.test)
        self.handle = self.scheduler.schedule(self.config.interval, self.tick, job_id=self.safe_name)
        self._calc_next_run()

    def stop(self) -> None:
        if self.scheduler is not None and self.handle is not None:
            self.scheduler.cancel(self.handle)
        self.handle = None
        self.state.next_run = None

    def _calc_next_run(self) -> None:
        if self.scheduler is not None and self.handle is not None:
            self.state.next_run = self.scheduler.next_run_time(self.handle)

    async def tick(self) -> bool:
        """
        Run one check cycle. Returns False without doing anything if the
        previous cycle is still running.
        """
        # no await between the check and the set, so this is atomic on the event loop
        if self.state.busy:
            self.log.info("Check was busy from previous run, skipping")
            return False

        self.state.busy = True
        try:
            await self._work()
        except Exception as e:
            self.log.error("Unhandled error in watcher tick", error=str(e), exc_info=True)
        finally:
            self.state.busy = False
        return True

    async def _work(self) -> None:
        now = self.clock()
        self.state.last_run = now
        self.state.error_message = None

        if not self.config.enabled:
            return

        outcome = await run_check(self.plugin, self.config.target_params)
        self.state.is_passing = outcome.passed
        if not outcome.passed:
            self.state.error_message = outcome.reason
            self.log.info("Check failed", kind=outcome.kind.value, reason=outcome.reason)

        self._calc_next_run()

        try:
            transitioned = self.store.record(self.safe_name, outcome.passed, self.config.url, now)
        except PersistenceError as e:
            self.state.status = STATUS_UNKNOWN
            self.state.error_message = f"Status could not be saved: {e}"
            self.log.error("Failed to persist status", error=str(e))
            return

        self.state.status = STATUS_UP if outcome.passed else STATUS_DOWN
        if not transitioned:
            return

        subject, body = self._build_message(outcome.passed, outcome.reason)
        self.log.info("Status changed", status=self.state.status, recipients=len(self.recipients))
        await self.dispatcher.notify_all(self.recipients, subject, body)

    def _build_message(self, is_passing: bool, reason: Optional[str]) -> tuple[str, str]:
        subject = f"{self.name} is up" if is_passing else f"{self.name} is down"
        lines = [subject]
        if not is_passing and reason:
            lines.append(f"Reason: {reason}")
        return subject, "\n".join(lines)

    def describe(self) -> dict[str, Any]:
        """Live state for dashboards."""
        return {
            "name": self.name,
            "safe_name": self.safe_name,
            "enabled": self.enabled,
            "is_passing": self.state.is_passing,
            "error_message": self.state.error_message,
            "last_run": self.state.last_run.isoformat() if self.state.last_run else None,
            "next_run": self.state.next_run.isoformat() if self.state.next_run else None,
        }
