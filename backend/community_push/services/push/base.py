"""Protocols for the collaborators the push core consumes. SQL, FCM, SMTP and community-API
adapters implement them; tests substitute in-memory fakes."""
from __future__ import annotations

from datetime import date
from typing import Any, Protocol, Sequence

from community_push.models.notification_setting import NotificationSetting
from community_push.services.push.types import (
    AuditRecord,
    ChatMessage,
    ChatRoom,
    Comment,
    DailySettingsCount,
    DeviceRecord,
    Membership,
    Post,
    ProviderResult,
    PushMessage,
    Reaction,
    SpeakerSlot,
    UserProfile,
)


class PushProvider(Protocol):
    """Mobile push gateway (FCM). All calls carry the provider's own timeout."""

    async def send_multicast(self, tokens: Sequence[str], message: PushMessage) -> list[ProviderResult]:
        """Send one message to many tokens. One result per token, same order as tokens."""
        ...

    async def subscribe_topic(self, tokens: Sequence[str], topic: str) -> None:
        """Subscribe tokens to topic. Subscribing an already-subscribed token succeeds."""
        ...

    async def unsubscribe_topic(self, tokens: Sequence[str], topic: str) -> None:
        """Unsubscribe tokens from topic. Unsubscribing a non-member token succeeds."""
        ...


class DeviceRegistry(Protocol):
    async def devices_for_user(self, user_id: str) -> list[DeviceRecord]:
        """Active devices that still carry a token."""
        ...

    async def null_tokens(self, tokens: Sequence[str]) -> int:
        """Null the given tokens wherever they are registered. Returns rows touched."""
        ...


class PreferenceStore(Protocol):
    async def get_preference(self, user_id: str, community_id: str) -> NotificationSetting | None:
        ...

    async def create_default(self, user_id: str, community_id: str) -> NotificationSetting:
        """Insert the default record, or return the existing one if another writer won."""
        ...

    async def save(self, preference: NotificationSetting) -> NotificationSetting:
        ...

    async def opted_in_users(
        self, community_id: str, field: str, excluded_user_ids: Sequence[str]
    ) -> list[str]:
        """User ids in community_id whose preference field is true."""
        ...


class DeliveryHistoryStore(Protocol):
    async def append(self, user_id: str, kind: str, serialized_payload: str) -> None:
        ...


class EmailSender(Protocol):
    async def send_reminder_email(self, user: UserProfile, content: dict[str, str]) -> bool:
        ...


class MembershipSource(Protocol):
    async def participation_level(self, user_id: str, community_id: str) -> str | None:
        ...

    async def get_membership(self, user_id: str, community_id: str) -> Membership | None:
        ...

    async def all_memberships_for_user(self, user_id: str) -> list[Membership]:
        ...

    async def current_speaker(self, community_id: str) -> SpeakerSlot | None:
        ...

    async def has_live_post(self, community_id: str) -> bool:
        ...


class ContentDirectory(Protocol):
    """Read-only lookups of community entities referenced by notification context ids."""

    async def get_chat_room(self, chat_room_id: str) -> ChatRoom | None:
        ...

    async def get_user(self, user_id: str) -> UserProfile | None:
        ...

    async def get_post(self, post_id: str) -> Post | None:
        ...

    async def get_comment(self, comment_id: str) -> Comment | None:
        ...

    async def get_reaction(self, reaction_id: str) -> Reaction | None:
        ...

    async def get_message(self, message_id: str) -> ChatMessage | None:
        ...

    async def get_live_posts(self, chat_room_id: str) -> list[Post]:
        ...

    async def list_chat_rooms(self, *, page: int, limit: int) -> list[ChatRoom]:
        ...


class AuditHistory(Protocol):
    async def find_previous_speaker(self, chat_room_id: str) -> list[AuditRecord]:
        """Most recent first."""
        ...


class LeagueDirectory(Protocol):
    async def has_active_league(self, chat_room_id: str) -> bool:
        ...


class CommunityStats(Protocol):
    async def commentator_count(self, chat_room_id: str) -> int:
        """Current number of full-access members (commentators)."""
        ...

    async def daily_counts(self, chat_room_id: str, start_date: date, end_date: date) -> list[DailySettingsCount]:
        """Recorded days in [start_date, end_date]; days without a record are absent."""
        ...


class RealtimeGateway(Protocol):
    async def emit_post_views_updated(self, chat_room_id: str) -> None:
        ...


class WorkQueue(Protocol):
    async def add(self, name: str, payload: dict[str, Any]) -> Any:
        """Append a job; returns an opaque job id."""
        ...
