"""Per-user, per-community notification preferences.

One row per (user_id, chat_room_id). Every toggle defaults to true; a missing row means
"allow" for every gated kind. selected_as_speaker / selected_as_next_speaker are stored
but not consulted when sending (those kinds always notify).
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func, true

from community_push.db.base import Base

PREFERENCE_FIELDS = (
    "tagged_in_post",
    "tagged_in_comment",
    "post_created",
    "selected_as_speaker",
    "selected_as_next_speaker",
    "all_comments",
    "show_in_viewed_by",
    "reaction_notification",
    "community_announcements",
)


class NotificationSetting(Base):
    __tablename__ = "notification_settings"
    __table_args__ = (
        UniqueConstraint("user_id", "chat_room_id", name="uq_notification_settings_user_chat_room"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    chat_room_id = Column(String(64), nullable=False, index=True)
    tagged_in_post = Column(Boolean, nullable=False, default=True, server_default=true())
    tagged_in_comment = Column(Boolean, nullable=False, default=True, server_default=true())
    post_created = Column(Boolean, nullable=False, default=True, server_default=true())
    selected_as_speaker = Column(Boolean, nullable=False, default=True, server_default=true())
    selected_as_next_speaker = Column(Boolean, nullable=False, default=True, server_default=true())
    all_comments = Column(Boolean, nullable=False, default=True, server_default=true())
    show_in_viewed_by = Column(Boolean, nullable=False, default=True, server_default=true())
    reaction_notification = Column(Boolean, nullable=False, default=True, server_default=true())
    community_announcements = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "chat_room_id": self.chat_room_id,
            **{f: getattr(self, f) for f in PREFERENCE_FIELDS},
        }
