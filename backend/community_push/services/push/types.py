"""Value types shared by the delivery engine, topic manager and reminder scheduler.

Entities owned by the community platform (chat rooms, posts, comments, users...) are
read-only snapshots here; this service never writes them.
"""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


class MicLevel(str, enum.Enum):
    """Participation level of a user in a community."""

    VIEWER = "viewer"
    COMMENTATOR = "commentator"
    SPEAKER = "speaker"
    PENDING = "pending"
    BANNED = "banned"


# Levels that keep a user's devices subscribed to the community topic
ON_TOPIC_LEVELS = frozenset({MicLevel.VIEWER.value, MicLevel.COMMENTATOR.value, MicLevel.SPEAKER.value})


@dataclass(frozen=True)
class UserProfile:
    id: str
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    public_address: str | None = None
    profile_picture: str | None = None
    email_opt_in: bool = False
    direct_messages_notifications: bool = True

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or self.email or self.public_address or "Someone"


@dataclass(frozen=True)
class ChatRoom:
    id: str
    name: str
    image: str | None = None
    notification_image: str | None = None


@dataclass(frozen=True)
class ChatRoomSummary:
    """Community fields shown in most notifications."""

    id: str
    name: str
    image: str = ""

    @classmethod
    def from_chat_room(cls, chat_room: ChatRoom) -> "ChatRoomSummary":
        return cls(
            id=chat_room.id,
            name=chat_room.name,
            image=chat_room.notification_image or chat_room.image or "",
        )


@dataclass(frozen=True)
class Post:
    id: str
    user_id: str
    chat_room_id: str
    title: str = ""
    conversation_id: str | None = None
    poll_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class Comment:
    id: str
    post_id: str
    user_id: str
    text: str = ""
    author: UserProfile | None = None


@dataclass(frozen=True)
class Reaction:
    id: str
    symbol: str
    notification_symbol: str | None = None
    comment_id: str | None = None


@dataclass(frozen=True)
class ChatMessage:
    id: str
    chat_id: str
    sender_id: str
    text: str = ""
    sender: UserProfile | None = None


@dataclass(frozen=True)
class SpeakerSlot:
    """Current speaker of a community and when their slot ends."""

    user_id: str
    ending_at: datetime
    user: UserProfile | None = None


@dataclass(frozen=True)
class Membership:
    user_id: str
    chat_room_id: str
    mic_level: str
    incognito: bool = False


@dataclass(frozen=True)
class AuditRecord:
    user_id: str
    chat_room_id: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class DailySettingsCount:
    """One day of notification-settings statistics for a community. None means not recorded."""

    date: str
    commentator_count: int | None = None
    all_comments_count: int | None = None
    mentions_count: int | None = None
    post_created_count: int | None = None


@dataclass(frozen=True)
class DeviceRecord:
    token: str
    active: bool = True


@dataclass
class PushMessage:
    """Provider-ready message. data values are strings (FCM requirement)."""

    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)
    image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProviderResult:
    """Outcome for one token of a multicast send, aligned with the request token order."""

    token: str
    success: bool
    error_code: str | None = None


@dataclass
class PayloadContext:
    """Entities resolved from a job's context ids, handed to the payload builders."""

    chat_room: ChatRoomSummary | None = None
    user: UserProfile | None = None
    comment: Comment | None = None
    post: Post | None = None
    reaction: Reaction | None = None
    message: ChatMessage | None = None
    time: str | None = None
    metadata: dict[str, Any] | None = None
