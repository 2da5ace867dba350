"""
Durable per-watcher status: current status, down marker and transition history.

Layout under the store root, one directory per watcher safe-name:

    <safe_name>/flag                    down marker {target, date}; presence == currently down
    <safe_name>/history/status.json     current status {status, target, date}
    <safe_name>/history/<epoch_ms>.json one file per transition {status, target, date}
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from ..errors import PersistenceError


logger = structlog.get_logger(__name__)

STATUS_UP = "up"
STATUS_DOWN = "down"
STATUS_UNKNOWN = "unknown"

FLAG_FILE = "flag"
HISTORY_DIR = "history"
STATUS_FILE = "status.json"


@dataclass(frozen=True)
class StatusRecord:
    status: str
    target: str | None = None
    date: datetime | None = None

    @classmethod
    def unknown(cls) -> "StatusRecord":
        return cls(status=STATUS_UNKNOWN)


@dataclass(frozen=True)
class HistoryEntry:
    status: str
    target: str | None
    date: datetime | None


def _parse_date(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


class StatusStore:
    """Sole owner of the on-disk status files."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock(self, watcher_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(watcher_id)
            if lock is None:
                lock = self._locks[watcher_id] = threading.Lock()
            return lock

    def _watcher_dir(self, watcher_id: str) -> Path:
        if not watcher_id or "/" in watcher_id or "\\" in watcher_id or watcher_id in (".", ".."):
            raise ValueError(f"Invalid watcher id: {watcher_id!r}")
        return self.root / watcher_id

    def _flag_path(self, watcher_id: str) -> Path:
        return self._watcher_dir(watcher_id) / FLAG_FILE

    def _history_dir(self, watcher_id: str) -> Path:
        return self._watcher_dir(watcher_id) / HISTORY_DIR

    def _append_history(self, watcher_id: str, status: str, target: str | None, now: datetime) -> Path:
        history_dir = self._history_dir(watcher_id)
        history_dir.mkdir(parents=True, exist_ok=True)
        stamp = int(now.timestamp() * 1000)
        path = history_dir / f"{stamp}.json"
        # keep history append-only even if two transitions land in the same millisecond
        while path.exists():
            stamp += 1
            path = history_dir / f"{stamp}.json"
        _write_json_atomic(path, {"status": status, "target": target, "date": now.isoformat()})
        return path

    def _write_status(self, watcher_id: str, status: str, target: str | None, now: datetime) -> None:
        _write_json_atomic(
            self._history_dir(watcher_id) / STATUS_FILE,
            {"status": status, "target": target, "date": now.isoformat()},
        )

    def record(self, watcher_id: str, is_passing: bool, target: str | None, now: datetime) -> bool:
        """
        Record one check outcome and return True if it is a status transition.

        The down marker is the durable memory of "currently down": a passing
        result only transitions when the marker exists, a failing one only when
        it does not. Steady-state passes rewrite status.json but never history.
        """
        flag = self._flag_path(watcher_id)
        with self._lock(watcher_id):
            try:
                if is_passing:
                    self._write_status(watcher_id, STATUS_UP, target, now)
                    if not flag.exists():
                        return False
                    flag.unlink()
                    self._append_history(watcher_id, STATUS_UP, target, now)
                    logger.info("Status changed, flag removed", watcher=watcher_id)
                    return True

                if flag.exists():
                    return False
                # marker goes last: a failed write leaves no marker, so the next tick retries the transition
                self._write_status(watcher_id, STATUS_DOWN, target, now)
                self._append_history(watcher_id, STATUS_DOWN, target, now)
                _write_json_atomic(flag, {"target": target, "date": now.isoformat()})
                logger.info("Status changed, flag created", watcher=watcher_id)
                return True
            except OSError as e:
                raise PersistenceError(f"Failed to record status for {watcher_id}: {e}") from e

    def is_down(self, watcher_id: str) -> bool:
        return self._flag_path(watcher_id).exists()

    def current_status(self, watcher_id: str) -> StatusRecord:
        """Current status record, or an "unknown" record if none exists or it can't be read."""
        path = self._history_dir(watcher_id) / STATUS_FILE
        with self._lock(watcher_id):
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                return StatusRecord.unknown()
            except (OSError, ValueError) as e:
                logger.warning("Failed to read status file", watcher=watcher_id, path=str(path), error=str(e))
                return StatusRecord.unknown()

        if not isinstance(raw, dict) or raw.get("status") not in (STATUS_UP, STATUS_DOWN):
            return StatusRecord.unknown()
        return StatusRecord(status=raw["status"], target=raw.get("target"), date=_parse_date(raw.get("date")))

    def history(self, watcher_id: str) -> list[HistoryEntry]:
        """Transition history, oldest first."""
        history_dir = self._history_dir(watcher_id)
        if not history_dir.is_dir():
            return []

        stamped: list[tuple[int, Path]] = []
        for path in history_dir.glob("*.json"):
            if path.stem.isdigit():
                stamped.append((int(path.stem), path))
        stamped.sort()

        entries: list[HistoryEntry] = []
        for _stamp, path in stamped:
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable history entry", watcher=watcher_id, path=str(path), error=str(e))
                continue
            if not isinstance(raw, dict):
                continue
            entries.append(
                HistoryEntry(
                    status=str(raw.get("status") or STATUS_UNKNOWN),
                    target=raw.get("target"),
                    date=_parse_date(raw.get("date")),
                )
            )
        return entries
