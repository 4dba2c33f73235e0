"""
SQL-backed stores for devices, notification preferences and delivery history.

Each call opens its own session from the injected session factory so stores are safe to
share across concurrent workers.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from community_push.models.notification_setting import PREFERENCE_FIELDS, NotificationSetting
from community_push.models.push_notification import PushNotification
from community_push.models.user_device import UserDevice
from community_push.services.push.gate import default_preference_values
from community_push.services.push.types import DeviceRecord

logger = logging.getLogger(__name__)


def _default_factory() -> async_sessionmaker[AsyncSession]:
    from community_push.db.session import SessionLocal

    return SessionLocal


class SqlDeviceRegistry:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._sessions = session_factory or _default_factory()

    async def devices_for_user(self, user_id: str) -> list[DeviceRecord]:
        async with self._sessions() as db:
            rows = await db.scalars(
                select(UserDevice).where(
                    UserDevice.user_id == user_id,
                    UserDevice.active.is_(True),
                    UserDevice.device_token.is_not(None),
                )
            )
            return [DeviceRecord(token=r.device_token, active=r.active) for r in rows]

    async def null_tokens(self, tokens: Sequence[str]) -> int:
        """Null tokens the provider rejected. Monotonic: concurrent callers may overlap safely."""
        tokens = [t for t in tokens if t]
        if not tokens:
            return 0
        async with self._sessions() as db:
            result = await db.execute(
                update(UserDevice)
                .where(UserDevice.device_token.in_(tokens))
                .values(device_token=None, updated_at=datetime.now(timezone.utc))
            )
            await db.commit()
            return result.rowcount or 0

    async def register(self, user_id: str, device_token: str, platform: str = "ios") -> bool:
        """
        Upsert a device token for user_id. Returns True when a new row was created.
        An existing token moves to user_id (same physical device, new login).
        """
        token = device_token.strip()
        async with self._sessions() as db:
            existing = await db.scalar(select(UserDevice).where(UserDevice.device_token == token))
            if existing:
                existing.user_id = user_id
                existing.platform = platform
                existing.active = True
                existing.updated_at = datetime.now(timezone.utc)
                await db.commit()
                return False
            db.add(UserDevice(user_id=user_id, device_token=token, platform=platform, active=True))
            await db.commit()
            logger.info("Registered device for user %s platform=%s", user_id, platform)
            return True

    async def deregister(self, user_id: str, device_token: str) -> bool:
        """Null the user's token (logout). Returns False when the token is not registered to user_id."""
        async with self._sessions() as db:
            result = await db.execute(
                update(UserDevice)
                .where(UserDevice.user_id == user_id, UserDevice.device_token == device_token.strip())
                .values(device_token=None, active=False, updated_at=datetime.now(timezone.utc))
            )
            await db.commit()
            return bool(result.rowcount)


class SqlPreferenceStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._sessions = session_factory or _default_factory()

    async def get_preference(self, user_id: str, community_id: str) -> NotificationSetting | None:
        async with self._sessions() as db:
            return await db.scalar(
                select(NotificationSetting).where(
                    NotificationSetting.user_id == user_id,
                    NotificationSetting.chat_room_id == community_id,
                )
            )

    async def create_default(self, user_id: str, community_id: str) -> NotificationSetting:
        """Insert defaults; if a concurrent writer inserted first, return their row."""
        async with self._sessions() as db:
            row = NotificationSetting(user_id=user_id, chat_room_id=community_id, **default_preference_values())
            db.add(row)
            try:
                await db.commit()
                return row
            except IntegrityError:
                await db.rollback()
        existing = await self.get_preference(user_id, community_id)
        if existing is None:
            raise RuntimeError(f"notification settings for {user_id}/{community_id} vanished after conflict")
        return existing

    async def save(self, preference: NotificationSetting) -> NotificationSetting:
        async with self._sessions() as db:
            merged = await db.merge(preference)
            await db.commit()
            return merged

    async def opted_in_users(
        self, community_id: str, field: str, excluded_user_ids: Sequence[str] = ()
    ) -> list[str]:
        if field not in PREFERENCE_FIELDS:
            raise ValueError(f"unknown preference field: {field}")
        column = getattr(NotificationSetting, field)
        stmt = select(NotificationSetting.user_id).where(
            NotificationSetting.chat_room_id == community_id,
            column.is_(True),
        )
        excluded = [u for u in excluded_user_ids if u]
        if excluded:
            stmt = stmt.where(NotificationSetting.user_id.not_in(excluded))
        async with self._sessions() as db:
            return list(await db.scalars(stmt))


class SqlDeliveryHistory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._sessions = session_factory or _default_factory()

    async def append(self, user_id: str, kind: str, serialized_payload: str) -> None:
        async with self._sessions() as db:
            db.add(PushNotification(user_id=user_id, notification_type=kind, message=serialized_payload))
            await db.commit()
