"""
Notification worker: drain the notification_jobs queue with N concurrent asyncio workers.

send-notification jobs run the delivery pipeline for every listed user; add-to-topic and
remove-from-topic jobs update a user's community topic; adjust-reminder jobs re-evaluate
a community's reminder timer. A job that raises is marked failed with the error text and
is not retried.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from community_push.config import settings
from community_push.core.constants import (
    JOB_ADD_TO_TOPIC,
    JOB_ADJUST_REMINDER,
    JOB_REMOVE_FROM_TOPIC,
    JOB_SEND_NOTIFICATION,
)
from community_push.services.push.delivery import DeliveryEngine
from community_push.services.push.jobs import DeliverNotificationJob, ReminderAdjustJob, TopicChangeJob
from community_push.services.push.topics import TopicManager
from community_push.services.reminder_scheduler import ReminderScheduler
from community_push.services.work_queue import ClaimedJob, SqlWorkQueue

logger = logging.getLogger(__name__)


class NotificationWorker:
    def __init__(
        self,
        queue: SqlWorkQueue,
        engine: DeliveryEngine,
        topics: TopicManager,
        reminders: ReminderScheduler | None = None,
        *,
        concurrency: int | None = None,
        poll_interval: float | None = None,
        claim_batch: int | None = None,
    ) -> None:
        self.queue = queue
        self.engine = engine
        self.topics = topics
        self.reminders = reminders
        self.concurrency = max(1, concurrency or settings.worker_concurrency)
        self.poll_interval = poll_interval if poll_interval is not None else settings.queue_poll_interval_seconds
        self.claim_batch = claim_batch or settings.queue_claim_batch
        self._tasks: list[asyncio.Task] = []
        self._stopping = asyncio.Event()

    async def dispatch(self, name: str, payload: dict[str, Any]) -> None:
        """Run one job. Raises on invalid payloads and unknown job names."""
        if name == JOB_SEND_NOTIFICATION:
            job = DeliverNotificationJob.model_validate(payload)
            await self.engine.deliver_to_users(job.user_ids, job.kind, job.context)
        elif name in (JOB_ADD_TO_TOPIC, JOB_REMOVE_FROM_TOPIC):
            job = TopicChangeJob.model_validate(payload)
            await self.topics.handle_job(job)
        elif name == JOB_ADJUST_REMINDER:
            job = ReminderAdjustJob.model_validate(payload)
            if self.reminders is None:
                raise RuntimeError("adjust-reminder job received but no reminder scheduler is configured")
            await self.reminders.adjust_timer(job.chat_room_id)
        else:
            raise ValueError(f"unknown job name: {name}")

    async def process(self, job: ClaimedJob) -> bool:
        """Dispatch a claimed job and record the outcome. Returns True on success."""
        try:
            await self.dispatch(job.name, job.payload)
        except ValidationError as e:
            logger.warning("Job %s (%s) has an invalid payload: %s", job.id, job.name, e)
            await self.queue.fail(job.id, str(e))
            return False
        except Exception as e:
            logger.exception("Job %s (%s) failed: %s", job.id, job.name, e)
            await self.queue.fail(job.id, f"{type(e).__name__}: {e}")
            return False
        await self.queue.complete(job.id)
        return True

    async def run_once(self) -> int:
        """Claim and process one batch. Returns the number of jobs claimed."""
        jobs = await self.queue.claim(self.claim_batch)
        for job in jobs:
            await self.process(job)
        return len(jobs)

    async def _loop(self, index: int) -> None:
        logger.debug("Notification worker %s started", index)
        while not self._stopping.is_set():
            try:
                claimed = await self.run_once()
            except Exception as e:
                logger.warning("Notification worker %s could not claim jobs: %s", index, e, exc_info=True)
                claimed = 0
            if claimed:
                continue
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.debug("Notification worker %s stopped", index)

    def start(self) -> None:
        if self._tasks:
            return
        self._stopping.clear()
        self._tasks = [asyncio.create_task(self._loop(i)) for i in range(self.concurrency)]
        logger.info("Notification worker started with %s workers", self.concurrency)

    async def stop(self) -> None:
        self._stopping.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
