"""
Wiring: build every service once per process and hand them to the API and the worker.

Routes reach these through app.state.services; tests swap in a ServiceContainer built from fakes.
"""
from __future__ import annotations

from dataclasses import dataclass

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from community_push.config import settings
from community_push.scheduler.notification_worker import NotificationWorker
from community_push.services.community.client import CommunityApiClient
from community_push.services.email_notify import SmtpEmailSender
from community_push.services.notification_settings import NotificationSettingsService
from community_push.services.push.delivery import DeliveryEngine
from community_push.services.push.fcm import FcmPushProvider
from community_push.services.push.topics import TopicManager
from community_push.services.reminder_scheduler import ReminderScheduler
from community_push.services.stores import SqlDeliveryHistory, SqlDeviceRegistry, SqlPreferenceStore
from community_push.services.timers import SchedulerTimerBackend
from community_push.services.triggers import NotificationTriggers
from community_push.services.work_queue import SqlWorkQueue


@dataclass
class ServiceContainer:
    devices: SqlDeviceRegistry
    settings_service: NotificationSettingsService
    engine: DeliveryEngine
    topics: TopicManager
    reminders: ReminderScheduler
    triggers: NotificationTriggers
    worker: NotificationWorker | None = None


def build_services(
    scheduler: AsyncIOScheduler,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> ServiceContainer:
    devices = SqlDeviceRegistry(session_factory)
    preferences = SqlPreferenceStore(session_factory)
    history = SqlDeliveryHistory(session_factory)
    queue = SqlWorkQueue(session_factory)
    community = CommunityApiClient()
    provider = FcmPushProvider()

    engine = DeliveryEngine(
        queue=queue,
        devices=devices,
        preferences=preferences,
        provider=provider,
        history=history,
        content=community,
        audit=community,
    )
    topics = TopicManager(
        devices=devices,
        provider=provider,
        membership=community,
        content=community,
        queue=queue,
        env=settings.env,
    )
    reminders = ReminderScheduler(
        membership=community,
        content=community,
        engine=engine,
        email=SmtpEmailSender(),
        leagues=community,
        timers=SchedulerTimerBackend(scheduler),
    )
    return ServiceContainer(
        devices=devices,
        settings_service=NotificationSettingsService(preferences, realtime=community, stats=community),
        engine=engine,
        topics=topics,
        reminders=reminders,
        triggers=NotificationTriggers(engine=engine, preferences=preferences, membership=community, content=community),
        worker=NotificationWorker(queue, engine, topics, reminders),
    )
