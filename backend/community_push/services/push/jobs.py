"""Work queue wire contract between producers and the notification worker."""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class NotificationContext(BaseModel):
    """Ids of referenced entities plus free-form timing/metadata. Absent fields are null."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chat_room_id: str | None = Field(default=None, alias="chatRoomId")
    post_id: str | None = Field(default=None, alias="postId")
    comment_id: str | None = Field(default=None, alias="commentId")
    reaction_id: str | None = Field(default=None, alias="reactionId")
    message_id: str | None = Field(default=None, alias="messageId")
    user_id: str | None = Field(default=None, alias="userId", description="Actor, e.g. who reacted")
    time: str | None = None
    metadata: dict[str, Any] | None = None


class DeliverNotificationJob(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_ids: list[str] = Field(..., alias="userIds")
    # Plain string so unknown kinds still reach the engine (and are logged as unsupported)
    kind: str
    context: NotificationContext = Field(default_factory=NotificationContext)


class TopicChangeJob(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    chat_room_id: str = Field(..., alias="chatRoomId")
    action: Literal["add", "remove"]


class ReminderAdjustJob(BaseModel):
    """Speaker or live-post state of a community changed; re-evaluate its reminder timer."""

    model_config = ConfigDict(populate_by_name=True)

    chat_room_id: str = Field(..., alias="chatRoomId")
