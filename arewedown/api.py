"""Read-only status API for dashboards and health probes."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from . import __version__
from .scheduler import WatcherScheduler
from .store import StatusStore


ISALIVE_TEXT = "ARE WE DOWN? service is running"


def create_app(watchers: WatcherScheduler, store: StatusStore) -> FastAPI:
    app = FastAPI(title="Are We Down?", version=__version__)
    app.state.watchers = watchers
    app.state.store = store

    @app.get("/status")
    async def get_status():
        """Live state of every watcher, failing ones first."""
        rows = app.state.watchers.snapshot()
        return {
            "all_passing": app.state.watchers.failing_count() == 0,
            "watchers": rows,
        }

    @app.get("/failing", response_class=PlainTextResponse)
    async def get_failing():
        """Count of enabled watchers currently failing. 0 when everything passes."""
        return str(app.state.watchers.failing_count())

    @app.get("/isalive", response_class=PlainTextResponse)
    async def isalive():
        return ISALIVE_TEXT

    @app.get("/watchers/{safe_name}/history")
    async def get_history(safe_name: str):
        watcher = app.state.watchers.get(safe_name)
        if watcher is None:
            raise HTTPException(status_code=404, detail=f"Unknown watcher: {safe_name}")
        entries = app.state.store.history(watcher.safe_name)
        return {
            "name": watcher.name,
            "history": [
                {
                    "status": e.status,
                    "target": e.target,
                    "date": e.date.isoformat() if e.date else None,
                }
                for e in entries
            ],
        }

    return app
