"""Tests for topic sync, topic naming and the bulk purge."""
import pytest

from community_push.core.constants import JOB_ADD_TO_TOPIC, JOB_REMOVE_FROM_TOPIC, TOPIC_PURGE_PAGE_SIZE
from community_push.services.push.jobs import TopicChangeJob
from community_push.services.push.topics import is_on_topic, make_topic
from community_push.services.push.types import ChatRoom


class TestTopicNames:
    def test_name_combines_namespace_env_and_community(self):
        assert make_topic("room-1", "prod") == "post-created-prod__room-1"

    def test_environments_never_collide(self):
        assert make_topic("room-1", "dev") != make_topic("room-1", "prod")

    @pytest.mark.parametrize(
        "level,expected",
        [("viewer", True), ("commentator", True), ("speaker", True), ("pending", False), ("banned", False), (None, False)],
    )
    def test_on_topic_levels(self, level, expected):
        assert is_on_topic(level) is expected


class TestSync:
    @pytest.mark.asyncio
    async def test_sync_follows_participation_level(self, topic_manager, devices, membership, provider):
        devices.tokens_by_user = {"u1": ["t1", "t2"]}
        membership.join("u1", "room-1", "viewer")
        membership.join("u1", "room-2", "banned")

        await topic_manager.sync_topic_for_user("u1")

        assert provider.subscribed == [(["t1", "t2"], "post-created-dev__room-1")]
        assert provider.unsubscribed == [(["t1", "t2"], "post-created-dev__room-2")]

    @pytest.mark.asyncio
    async def test_sync_twice_is_idempotent(self, topic_manager, devices, membership, provider):
        devices.tokens_by_user = {"u1": ["t1"]}
        membership.join("u1", "room-1", "speaker")

        await topic_manager.sync_topic_for_user("u1")
        first = (list(provider.subscribed), list(provider.unsubscribed))
        await topic_manager.sync_topic_for_user("u1")

        assert provider.subscribed == first[0] * 2
        assert provider.unsubscribed == first[1] * 2

    @pytest.mark.asyncio
    async def test_zero_devices_is_a_no_op(self, topic_manager, membership, provider):
        membership.join("u1", "room-1", "viewer")
        await topic_manager.sync_topic_for_user("u1")
        assert provider.subscribed == []

    @pytest.mark.asyncio
    async def test_provider_error_on_one_community_continues(self, topic_manager, devices, membership, provider):
        devices.tokens_by_user = {"u1": ["t1"]}
        membership.join("u1", "room-1", "viewer")
        membership.join("u1", "room-2", "viewer")
        provider.topic_error_for = {"post-created-dev__room-1"}

        await topic_manager.sync_topic_for_user("u1")

        assert provider.subscribed == [(["t1"], "post-created-dev__room-2")]

    @pytest.mark.asyncio
    async def test_sync_many_users_isolates_failures(self, topic_manager, devices, membership, provider):
        devices.tokens_by_user = {"u2": ["t2"]}
        devices.fail_for = {"u1"}
        membership.join("u1", "room-1", "viewer")
        membership.join("u2", "room-1", "viewer")

        await topic_manager.sync_topics_for_users(["u1", "u2"])

        assert provider.subscribed == [(["t2"], "post-created-dev__room-1")]


class TestJobs:
    @pytest.mark.asyncio
    async def test_enqueue_subscribe_and_unsubscribe(self, topic_manager, queue):
        await topic_manager.enqueue_subscribe("u1", "room-1")
        await topic_manager.enqueue_unsubscribe("u1", "room-1")

        assert queue.jobs == [
            (JOB_ADD_TO_TOPIC, {"userId": "u1", "chatRoomId": "room-1", "action": "add"}),
            (JOB_REMOVE_FROM_TOPIC, {"userId": "u1", "chatRoomId": "room-1", "action": "remove"}),
        ]

    @pytest.mark.asyncio
    async def test_handle_job(self, topic_manager, devices, provider):
        devices.tokens_by_user = {"u1": ["t1"]}
        await topic_manager.handle_job(TopicChangeJob(userId="u1", chatRoomId="room-1", action="remove"))
        assert provider.unsubscribed == [(["t1"], "post-created-dev__room-1")]


class TestPurge:
    @pytest.mark.asyncio
    async def test_purge_reads_a_single_page(self, topic_manager, content, provider):
        content.chat_rooms = {f"room-{i}": ChatRoom(id=f"room-{i}", name=f"Room {i}") for i in range(150)}

        processed = await topic_manager.purge_tokens_from_all_topics(["t1"])

        assert processed == TOPIC_PURGE_PAGE_SIZE
        assert len(provider.unsubscribed) == TOPIC_PURGE_PAGE_SIZE
        assert provider.subscribed == []

    @pytest.mark.asyncio
    async def test_purge_without_tokens(self, topic_manager, provider):
        assert await topic_manager.purge_tokens_from_all_topics([]) == 0
        assert provider.unsubscribed == []
