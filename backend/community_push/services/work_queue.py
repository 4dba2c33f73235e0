"""
Durable work queue on the notification_jobs table.

Producers add rows (pending); workers claim a batch (running), then mark each job completed
or failed. Claiming uses SELECT ... FOR UPDATE SKIP LOCKED where the database supports it so
several worker processes can drain the same table. Jobs are never retried or cancelled.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from community_push.core.constants import JOB_ERROR_MAX_CHARS, JOB_NAMES
from community_push.models.notification_job import JobStatus, NotificationJob

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimedJob:
    id: int
    name: str
    payload: dict[str, Any]


class SqlWorkQueue:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from community_push.db.session import SessionLocal

            session_factory = SessionLocal
        self._sessions = session_factory

    async def add(self, name: str, payload: dict[str, Any]) -> int:
        if name not in JOB_NAMES:
            raise ValueError(f"unknown job name: {name}")
        async with self._sessions() as db:
            job = NotificationJob(name=name, payload=payload, status=JobStatus.PENDING.value)
            db.add(job)
            await db.commit()
            return job.id

    async def claim(self, limit: int = 10) -> list[ClaimedJob]:
        """Move up to limit pending jobs (oldest first) to running and return them."""
        async with self._sessions() as db:
            rows = list(
                await db.scalars(
                    select(NotificationJob)
                    .where(NotificationJob.status == JobStatus.PENDING.value)
                    .order_by(NotificationJob.id.asc())
                    .limit(limit)
                    .with_for_update(skip_locked=True)
                )
            )
            if not rows:
                return []
            now = datetime.now(timezone.utc)
            for row in rows:
                row.status = JobStatus.RUNNING.value
                row.started_at = now
            await db.commit()
            return [ClaimedJob(id=r.id, name=r.name, payload=dict(r.payload or {})) for r in rows]

    async def complete(self, job_id: int) -> None:
        await self._finish(job_id, JobStatus.COMPLETED, None)

    async def fail(self, job_id: int, error: str) -> None:
        await self._finish(job_id, JobStatus.FAILED, (error or "")[:JOB_ERROR_MAX_CHARS])

    async def _finish(self, job_id: int, status: JobStatus, error: str | None) -> None:
        async with self._sessions() as db:
            await db.execute(
                update(NotificationJob)
                .where(NotificationJob.id == job_id)
                .values(status=status.value, error=error, finished_at=datetime.now(timezone.utc))
            )
            await db.commit()

    async def count(self, status: JobStatus = JobStatus.PENDING) -> int:
        async with self._sessions() as db:
            return int(
                await db.scalar(
                    select(func.count()).select_from(NotificationJob).where(NotificationJob.status == status.value)
                )
                or 0
            )
