"""Cron expression parsing shared by config validation and the job scheduler."""

from __future__ import annotations

from datetime import timezone
from typing import Any

from apscheduler.triggers.cron import CronTrigger


def build_cron_trigger(cron_expression: str, timezone_name: Any = timezone.utc) -> CronTrigger:
    """
    Parse "minute hour day month day_of_week", or the same with a leading
    seconds field. day_of_week uses APScheduler semantics (mon=0, or names).

    Raises ValueError for a wrong field count or an out-of-range field.
    """
    cron_parts = cron_expression.split()
    if len(cron_parts) == 5:
        second = "0"
    elif len(cron_parts) == 6:
        second = cron_parts.pop(0)
    else:
        raise ValueError(f"Invalid cron expression: {cron_expression}")

    return CronTrigger(
        second=second,
        minute=cron_parts[0],
        hour=cron_parts[1],
        day=cron_parts[2],
        month=cron_parts[3],
        day_of_week=cron_parts[4],
        timezone=timezone_name,
    )
