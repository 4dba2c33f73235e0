"""
Shared fixtures: fakes for every collaborator protocol (see fakes.py), a controllable clock
and timer backend, and an in-memory SQLite database for the SQL stores.
"""
import os

# Point settings at SQLite before any community_push module builds the engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENV", "test")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import community_push.models  # noqa: F401  (registers every table on Base.metadata)
from community_push.db.base import Base
from community_push.services.push.delivery import DeliveryEngine
from community_push.services.push.topics import TopicManager
from community_push.services.push.types import ChatRoom

from fakes import (
    Clock,
    FakeAudit,
    FakeContent,
    FakeDevices,
    FakeHistory,
    FakeMembership,
    FakePreferences,
    FakeProvider,
    FakeQueue,
    FakeRealtime,
    FakeStats,
    FakeTimers,
)


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def devices():
    return FakeDevices()


@pytest.fixture
def preferences():
    return FakePreferences()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def history():
    return FakeHistory()


@pytest.fixture
def content():
    c = FakeContent()
    c.chat_rooms["room-1"] = ChatRoom(id="room-1", name="Night Owls", image="https://img/owl.png")
    return c


@pytest.fixture
def audit():
    return FakeAudit()


@pytest.fixture
def membership():
    return FakeMembership()


@pytest.fixture
def realtime():
    return FakeRealtime()


@pytest.fixture
def stats():
    return FakeStats(commentators=4)


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def delivery(queue, devices, preferences, provider, history, content, audit):
    return DeliveryEngine(
        queue=queue,
        devices=devices,
        preferences=preferences,
        provider=provider,
        history=history,
        content=content,
        audit=audit,
    )


@pytest.fixture
def topic_manager(devices, provider, membership, content, queue):
    return TopicManager(
        devices=devices,
        provider=provider,
        membership=membership,
        content=content,
        queue=queue,
        env="dev",
    )


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    await engine.dispose()
