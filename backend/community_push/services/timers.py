"""
One-shot timers on the APScheduler AsyncIOScheduler.

Each arm() adds a "date" job that runs the callback once on the event loop after delay.
Handles carry a unique job id so a stale handle can never cancel a newer timer.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class TimerHandle:
    name: str
    job_id: str
    delay: timedelta
    due_at: datetime


class TimerBackend(Protocol):
    def arm(self, name: str, delay: timedelta, callback: TimerCallback) -> TimerHandle:
        ...

    def cancel(self, handle: TimerHandle) -> bool:
        """Cancel a pending timer. Returns False if it already fired or was canceled."""
        ...


class SchedulerTimerBackend:
    def __init__(self, scheduler: AsyncIOScheduler) -> None:
        self.scheduler = scheduler

    def arm(self, name: str, delay: timedelta, callback: TimerCallback) -> TimerHandle:
        due_at = datetime.now(timezone.utc) + max(delay, timedelta(0))
        job_id = f"{name}:{uuid.uuid4().hex[:12]}"
        self.scheduler.add_job(
            callback,
            "date",
            run_date=due_at,
            id=job_id,
            name=name,
            # Run late rather than drop a reminder when the loop was busy
            misfire_grace_time=None,
        )
        logger.debug("Armed timer %s due at %s", job_id, due_at.isoformat())
        return TimerHandle(name=name, job_id=job_id, delay=delay, due_at=due_at)

    def cancel(self, handle: TimerHandle) -> bool:
        try:
            self.scheduler.remove_job(handle.job_id)
        except JobLookupError:
            return False
        logger.debug("Canceled timer %s", handle.job_id)
        return True
