"""Delivery history: one row per attempted push to a user (audit).

message: the provider payload serialized as JSON text.
"""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from community_push.db.base import Base


class PushNotification(Base):
    __tablename__ = "push_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    notification_type = Column(String(64), nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
