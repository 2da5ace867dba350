from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from arewedown.config import WatcherConfig
from arewedown.errors import CheckFailure
from arewedown.notifications import DeliveryResult, NotificationDispatcher
from arewedown.recipients import Recipient
from arewedown.scheduler import Watcher
from arewedown.store import StatusStore


class FakeScheduler:
    """In-memory Scheduler: records jobs, never fires them."""

    def __init__(self) -> None:
        self.jobs: dict[str, tuple[str, Any]] = {}
        self.started = False
        self.stopped = False
        self.next_fire = datetime(2030, 1, 1, tzinfo=timezone.utc)

    def start(self) -> None:
        self.started = True

    def shutdown(self) -> None:
        self.stopped = True

    def schedule(self, expression: str, callback, *, job_id: str, run_immediately: bool = True) -> str:
        self.jobs[job_id] = (expression, callback)
        return job_id

    def cancel(self, handle: str) -> bool:
        return self.jobs.pop(handle, None) is not None

    def next_run_time(self, handle: str) -> datetime | None:
        return self.next_fire if handle in self.jobs else None


class ScriptedPlugin:
    """
    Plays back a script, one step per run: True passes, a string fails with
    that reason, an exception instance is raised as-is. The last step repeats.
    """

    def __init__(self, *script: Any) -> None:
        self.script = list(script) or [True]
        self.calls = 0
        self.configs: list[dict[str, Any]] = []

    async def run(self, config: dict[str, Any]) -> None:
        step = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        self.configs.append(config)
        if isinstance(step, BaseException):
            raise step
        if step is not True:
            raise CheckFailure(str(step))


class RecordingTransport:
    name = "recording"
    channel = "email"

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for = fail_for or set()

    async def send(self, address: str, subject: str, body: str) -> DeliveryResult:
        if address in self.fail_for:
            raise ConnectionError(f"mailbox {address} unavailable")
        self.sent.append((address, subject, body))
        return DeliveryResult(ok=True, transport=self.name, address=address, receipt=len(self.sent))


class StepClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


@pytest.fixture
def store(tmp_path: Path) -> StatusStore:
    return StatusStore(tmp_path / "logs")


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def recipients() -> list[Recipient]:
    return [Recipient(name="alice", address="alice@example.com")]


@pytest.fixture
def make_watcher(
    store: StatusStore, transport: RecordingTransport, fake_scheduler: FakeScheduler, recipients: list[Recipient]
) -> Callable[..., Watcher]:
    def _make(plugin: Any, name: str = "site-a", **config: Any) -> Watcher:
        watcher_config = WatcherConfig(name=name, url=config.pop("url", "https://site-a.example.com"), **config)
        return Watcher(
            watcher_config,
            plugin=plugin,
            store=store,
            dispatcher=NotificationDispatcher(transport),
            recipients=recipients,
            scheduler=fake_scheduler,
            clock=StepClock(),
        )

    return _make


@pytest.fixture
def scripted_plugin() -> Callable[..., ScriptedPlugin]:
    return ScriptedPlugin
