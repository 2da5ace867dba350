"""Owns the set of watchers for one daemon process."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from ..checks import CheckRegistry
from ..config import AppConfig, WatcherConfig, ensure_unique_watchers
from ..errors import ConfigurationError
from ..notifications import NotificationDispatcher
from ..recipients import resolve_recipients
from ..store import StatusStore
from .job_scheduler import Scheduler
from .watcher import Watcher


logger = structlog.get_logger(__name__)


class WatcherScheduler:
    """Builds, starts and stops watchers and answers live-state queries."""

    def __init__(
        self,
        config: AppConfig,
        *,
        registry: CheckRegistry,
        store: StatusStore,
        dispatcher: NotificationDispatcher,
        scheduler: Scheduler,
    ):
        self.config = config
        self.registry = registry
        self.store = store
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self._watchers: Dict[str, Watcher] = {}
        self.running = False

    @property
    def watchers(self) -> List[Watcher]:
        return list(self._watchers.values())

    def get(self, name: str) -> Optional[Watcher]:
        watcher = self._watchers.get(name)
        if watcher is not None:
            return watcher
        for candidate in self._watchers.values():
            if candidate.safe_name == name:
                return candidate
        return None

    def _validate(self, configs: List[WatcherConfig]) -> None:
        ensure_unique_watchers(configs)
        for watcher_config in configs:
            if watcher_config.test not in self.registry:
                raise ConfigurationError(
                    f'Watcher "{watcher_config.name}" uses unknown check "{watcher_config.test}". '
                    f"Available: {', '.join(self.registry.names())}"
                )

    def build_watchers(self) -> List[Watcher]:
        """Validate every entry, then construct one Watcher per enabled entry. Starts nothing."""
        configs = list(self.config.watchers.values())
        self._validate(configs)

        watchers: List[Watcher] = []
        for watcher_config in configs:
            if not watcher_config.enabled:
                logger.info("Watcher disabled, not scheduling", watcher=watcher_config.name)
                continue
            recipients = resolve_recipients(
                watcher_config.recipients, self.config.recipients, watcher=watcher_config.name
            )
            watchers.append(
                Watcher(
                    watcher_config,
                    plugin=self.registry.get(watcher_config.test),
                    store=self.store,
                    dispatcher=self.dispatcher,
                    recipients=recipients,
                    scheduler=self.scheduler,
                )
            )
        return watchers

    def start(self) -> None:
        if self.running:
            logger.warning("Watchers already started")
            return

        if not self.config.watchers:
            logger.warning("No watchers were defined in settings file")

        # everything is validated before the first watcher is scheduled
        watchers = self.build_watchers()

        self.scheduler.start()
        for watcher in watchers:
            self._watchers[watcher.name] = watcher
            watcher.start()
        self.running = True
        logger.info("Watchers started", count=len(watchers))

    def stop(self) -> None:
        """Stop issuing ticks. In-flight ticks finish on their own; the store is not touched."""
        for watcher in self._watchers.values():
            watcher.stop()
        self.scheduler.shutdown()
        self.running = False
        logger.info("Watchers stopped", count=len(self._watchers))

    def failing_count(self) -> int:
        return sum(1 for w in self._watchers.values() if w.enabled and not w.state.is_passing)

    def snapshot(self) -> List[Dict[str, Any]]:
        """Live state joined with stored status, failing watchers first, then by name."""
        watchers = sorted(self._watchers.values(), key=lambda w: (w.state.is_passing, w.name.lower()))
        rows: List[Dict[str, Any]] = []
        for watcher in watchers:
            row = watcher.describe()
            record = self.store.current_status(watcher.safe_name)
            row["status"] = record.status
            row["status_date"] = record.date.isoformat() if record.date else None
            rows.append(row)
        return rows
