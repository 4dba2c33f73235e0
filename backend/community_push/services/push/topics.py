"""
Topic manager: keep each device's community topic membership in sync with the user's
participation level.

Membership is derived state. A user is on-topic for a community iff their mic level is
viewer, commentator or speaker; every sync issues a fresh subscribe or unsubscribe for all
of the user's active tokens rather than diffing against what was sent before. Idempotency
is delegated to the provider (re-subscribing or re-unsubscribing succeeds).
"""
from __future__ import annotations

import logging
from typing import Sequence

from community_push.config import settings
from community_push.core.constants import (
    JOB_ADD_TO_TOPIC,
    JOB_REMOVE_FROM_TOPIC,
    TOPIC_NAMESPACE,
    TOPIC_PURGE_PAGE_SIZE,
)
from community_push.services.push.base import (
    ContentDirectory,
    DeviceRegistry,
    MembershipSource,
    PushProvider,
    WorkQueue,
)
from community_push.services.push.jobs import TopicChangeJob
from community_push.services.push.types import ON_TOPIC_LEVELS

logger = logging.getLogger(__name__)


def make_topic(community_id: str, env: str | None = None) -> str:
    """Topic for all devices following a community, scoped by environment (dev/prod never collide)."""
    env = (env or settings.env).strip().lower()
    return f"{TOPIC_NAMESPACE}-{env}__{community_id}"


def is_on_topic(mic_level: str | None) -> bool:
    return mic_level in ON_TOPIC_LEVELS


class TopicManager:
    def __init__(
        self,
        *,
        devices: DeviceRegistry,
        provider: PushProvider,
        membership: MembershipSource,
        content: ContentDirectory,
        queue: WorkQueue,
        env: str | None = None,
    ) -> None:
        self.devices = devices
        self.provider = provider
        self.membership = membership
        self.content = content
        self.queue = queue
        self.env = env or settings.env

    def topic_for(self, community_id: str) -> str:
        return make_topic(community_id, self.env)

    # - Background producers

    async def enqueue_subscribe(self, user_id: str, community_id: str) -> None:
        await self._enqueue(JOB_ADD_TO_TOPIC, TopicChangeJob(user_id=user_id, chat_room_id=community_id, action="add"))

    async def enqueue_unsubscribe(self, user_id: str, community_id: str) -> None:
        await self._enqueue(
            JOB_REMOVE_FROM_TOPIC,
            TopicChangeJob(user_id=user_id, chat_room_id=community_id, action="remove"),
        )

    async def _enqueue(self, name: str, job: TopicChangeJob) -> None:
        try:
            await self.queue.add(name, job.model_dump(by_alias=True))
        except Exception as e:
            logger.exception("Failed to enqueue %s for user %s in chat room %s: %s", name, job.user_id, job.chat_room_id, e)

    async def handle_job(self, job: TopicChangeJob) -> None:
        if job.action == "add":
            await self.subscribe(job.user_id, job.chat_room_id)
        else:
            await self.unsubscribe(job.user_id, job.chat_room_id)

    # - Subscriptions

    async def subscribe(self, user_id: str, community_id: str) -> None:
        tokens = await self._tokens(user_id)
        await self._apply(tokens, community_id, on_topic=True)

    async def unsubscribe(self, user_id: str, community_id: str) -> None:
        tokens = await self._tokens(user_id)
        await self._apply(tokens, community_id, on_topic=False)

    async def sync_topic_for_user(self, user_id: str) -> None:
        """Recompute on/off-topic for every community the user belongs to."""
        memberships = await self.membership.all_memberships_for_user(user_id)
        if not memberships:
            return
        tokens = await self._tokens(user_id)
        if not tokens:
            logger.debug("User %s has no active device tokens; topic sync skipped", user_id)
            return
        for membership in memberships:
            await self._apply(tokens, membership.chat_room_id, on_topic=is_on_topic(membership.mic_level))

    async def sync_topics_for_users(self, user_ids: Sequence[str]) -> None:
        for user_id in user_ids:
            try:
                await self.sync_topic_for_user(user_id)
            except Exception as e:
                logger.exception("Topic sync failed for user %s: %s", user_id, e)

    async def purge_tokens_from_all_topics(self, tokens: Sequence[str]) -> int:
        """
        Unsubscribe tokens from every community topic (device deregistration).
        Reads one page of TOPIC_PURGE_PAGE_SIZE communities; beyond that the purge is
        best-effort. Returns the number of communities processed.
        """
        tokens = [t for t in tokens if t]
        if not tokens:
            return 0
        chat_rooms = await self.content.list_chat_rooms(page=1, limit=TOPIC_PURGE_PAGE_SIZE)
        if len(chat_rooms) >= TOPIC_PURGE_PAGE_SIZE:
            logger.warning(
                "Topic purge limited to the first %s communities; remaining communities keep stale subscriptions",
                TOPIC_PURGE_PAGE_SIZE,
            )
        for chat_room in chat_rooms:
            await self._apply(tokens, chat_room.id, on_topic=False)
        return len(chat_rooms)

    async def _tokens(self, user_id: str) -> list[str]:
        devices = await self.devices.devices_for_user(user_id)
        return [d.token for d in devices if d.active and d.token]

    async def _apply(self, tokens: Sequence[str], community_id: str, *, on_topic: bool) -> bool:
        """Subscribe or unsubscribe tokens. Provider errors are logged, never raised."""
        if not tokens:
            return False
        topic = self.topic_for(community_id)
        try:
            if on_topic:
                await self.provider.subscribe_topic(list(tokens), topic)
            else:
                await self.provider.unsubscribe_topic(list(tokens), topic)
            return True
        except Exception as e:
            logger.warning(
                "Topic %s failed for %s tokens on %s: %s",
                "subscribe" if on_topic else "unsubscribe",
                len(tokens),
                topic,
                e,
                exc_info=True,
            )
            return False
