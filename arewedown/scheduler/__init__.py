"""Scheduler module for running watchers."""

from .job_scheduler import JobScheduler, Scheduler, build_cron_trigger
from .watcher import Watcher, WatcherRuntimeState
from .watcher_scheduler import WatcherScheduler

__all__ = [
    "JobScheduler",
    "Scheduler",
    "Watcher",
    "WatcherRuntimeState",
    "WatcherScheduler",
    "build_cron_trigger",
]
