"""Device registration: one row per physical device per user.

device_token is nulled (never deleted, never reused) when the push provider reports it
permanently invalid. active=False devices are skipped for delivery and topics.
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func, true

from community_push.db.base import Base


class UserDevice(Base):
    __tablename__ = "user_devices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    device_token = Column(String(512), nullable=True, index=True)
    platform = Column(String(16), nullable=False, server_default="ios")
    active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
