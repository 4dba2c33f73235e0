"""
Notification settings: per-user, per-community preferences.

Every user has one set of preferences per community. Records are created lazily on first
read (users created before this service existed have none); concurrent first reads still
create exactly one record. Per-day opt-in statistics for a community feed its graphs.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Mapping

from community_push.core.errors import ForbiddenError
from community_push.models.notification_setting import PREFERENCE_FIELDS, NotificationSetting
from community_push.services.push.base import CommunityStats, PreferenceStore, RealtimeGateway
from community_push.services.push.types import DailySettingsCount

logger = logging.getLogger(__name__)


class NotificationSettingsService:
    def __init__(
        self,
        store: PreferenceStore,
        realtime: RealtimeGateway | None = None,
        stats: CommunityStats | None = None,
    ) -> None:
        self.store = store
        self.realtime = realtime
        self.stats = stats
        self._create_locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, user_id: str, community_id: str) -> asyncio.Lock:
        return self._create_locks.setdefault((user_id, community_id), asyncio.Lock())

    async def get_user_community_preferences(self, user_id: str, community_id: str) -> NotificationSetting:
        """Return the user's preferences for community_id, creating the default record if missing."""
        preferences = await self.store.get_preference(user_id, community_id)
        if preferences is not None:
            return preferences
        async with self._lock_for(user_id, community_id):
            # Another reader may have created it while we waited
            preferences = await self.store.get_preference(user_id, community_id)
            if preferences is None:
                preferences = await self.store.create_default(user_id, community_id)
                logger.info("Created default notification settings for user %s in %s", user_id, community_id)
        self._create_locks.pop((user_id, community_id), None)
        return preferences

    async def update_user_community_preferences(
        self,
        user_id: str,
        community_id: str,
        changes: Mapping[str, Any],
    ) -> NotificationSetting:
        """
        Apply the given toggles (None or absent keys are left unchanged) and save.
        A change to show_in_viewed_by tells realtime clients to re-fetch post views.
        """
        unknown = set(changes) - set(PREFERENCE_FIELDS)
        if unknown:
            raise ValueError(f"unknown notification settings: {sorted(unknown)}")

        preferences = await self.get_user_community_preferences(user_id, community_id)
        previous_show_in_viewed_by = preferences.show_in_viewed_by

        for field, value in changes.items():
            if value is not None:
                setattr(preferences, field, bool(value))
        updated = await self.store.save(preferences)

        new_value = changes.get("show_in_viewed_by")
        if new_value is not None and bool(new_value) != previous_show_in_viewed_by and self.realtime:
            await self.realtime.emit_post_views_updated(community_id)
        return updated

    async def create_if_not_present(self, user_id: str, community_id: str) -> None:
        """Used when a user joins a community. Failures are logged, never raised."""
        try:
            await self.get_user_community_preferences(user_id, community_id)
        except Exception as e:
            logger.exception("Could not create notification settings for user %s in %s: %s", user_id, community_id, e)

    async def get_notification_settings_graphs_data(
        self,
        community_id: str | None,
        start_date: date | None,
        end_date: date | None,
    ) -> list[dict[str, Any]]:
        """
        One entry per day from start_date to end_date inclusive. Days with no recorded
        statistics report the current full-access count and zero opt-ins.
        """
        if not community_id or not start_date or not end_date:
            raise ForbiddenError("chatRoomId, startDate and endDate are required")
        if self.stats is None:
            raise RuntimeError("notification settings statistics are not configured")

        current_full_access = await self.stats.commentator_count(community_id)
        recorded = {c.date: c for c in await self.stats.daily_counts(community_id, start_date, end_date)}

        series = []
        day = start_date
        while day <= end_date:
            key = day.isoformat()
            counts = recorded.get(key) or DailySettingsCount(date=key)
            series.append(
                {
                    "date": key,
                    "full_access_count": _or_default(counts.commentator_count, current_full_access),
                    "all_comments": _or_default(counts.all_comments_count, 0),
                    "mentions": _or_default(counts.mentions_count, 0),
                    "new_posts": _or_default(counts.post_created_count, 0),
                }
            )
            day += timedelta(days=1)
        return series


def _or_default(value: int | None, default: int) -> int:
    return default if value is None else value
