"""Tests for the delivery engine: gate, payload, devices, multicast, token pruning, history."""
import asyncio
import json

import pytest

from community_push.config import settings
from community_push.core.constants import JOB_SEND_NOTIFICATION
from community_push.services.push.delivery import DeliveryEngine, invalid_tokens
from community_push.services.push.gate import ALWAYS_ALLOWED
from community_push.services.push.kinds import PushNotificationKind as K
from community_push.services.push.types import (
    AuditRecord,
    Post,
    ProviderResult,
    Reaction,
    UserProfile,
)

NOT_REGISTERED = "messaging/registration-token-not-registered"


@pytest.fixture
def post_context(content):
    content.posts["p1"] = Post(id="p1", user_id="author", chat_room_id="room-1", title="Friday recap")
    return {"chatRoomId": "room-1", "postId": "p1"}


class TestPreferenceDenial:
    @pytest.mark.asyncio
    async def test_denied_user_gets_no_send_and_no_history(
        self, delivery, devices, preferences, provider, history, post_context
    ):
        devices.tokens_by_user = {"u1": ["t1", "t2"], "u2": ["t3"]}
        preferences.put("u1", "room-1", post_created=False)

        await delivery.deliver_to_users(["u1", "u2"], K.POST_CREATED, post_context)

        sent_tokens = [tokens for tokens, _ in provider.sent]
        assert sent_tokens == [["t3"]]
        assert [r[0] for r in history.records] == ["u2"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", sorted(ALWAYS_ALLOWED, key=lambda k: k.value))
    async def test_unconditional_kinds_send_without_record(self, kind, delivery, devices, provider, history, content):
        devices.tokens_by_user = {"u1": ["t1"]}
        content.users["actor"] = UserProfile(id="actor", username="grace")

        sent = await delivery.send_to_user("u1", kind, {"chatRoomId": "room-1", "userId": "actor"})

        assert sent is True
        assert len(provider.sent) == 1
        assert history.records[0][1] == kind.value

    @pytest.mark.asyncio
    async def test_direct_messages_follow_profile_flag(self, delivery, devices, provider, content):
        from community_push.services.push.types import ChatMessage

        devices.tokens_by_user = {"u1": ["t1"]}
        content.users["u1"] = UserProfile(id="u1", direct_messages_notifications=False)
        content.messages["m1"] = ChatMessage(id="m1", chat_id="chat-1", sender_id="u2", text="hi")

        assert await delivery.send_to_user("u1", K.DIRECT_MESSAGE, {"messageId": "m1"}) is False
        assert provider.sent == []


class TestSoftNoOps:
    @pytest.mark.asyncio
    async def test_unsupported_kind(self, delivery, devices, provider, history):
        devices.tokens_by_user = {"u1": ["t1"]}
        assert await delivery.send_to_user("u1", "mystery-kind", {"chatRoomId": "room-1"}) is False
        assert provider.sent == []
        assert history.records == []

    @pytest.mark.asyncio
    async def test_missing_required_context(self, delivery, devices, provider, history):
        devices.tokens_by_user = {"u1": ["t1"]}
        # post-created needs a post
        assert await delivery.send_to_user("u1", K.POST_CREATED, {"chatRoomId": "room-1"}) is False
        assert provider.sent == []
        assert history.records == []

    @pytest.mark.asyncio
    async def test_no_devices(self, delivery, provider, history, post_context):
        assert await delivery.send_to_user("nobody", K.POST_CREATED, post_context) is False
        assert provider.sent == []
        assert history.records == []


class TestTokenPruning:
    @pytest.mark.asyncio
    async def test_two_of_five_rejected_tokens_are_nulled(self, delivery, devices, provider, history, post_context):
        devices.tokens_by_user = {"u1": ["t1", "t2", "t3", "t4", "t5"]}
        provider.error_codes = {"t2": NOT_REGISTERED, "t4": NOT_REGISTERED}

        await delivery.deliver_to_users(["u1"], K.POST_CREATED, post_context)

        assert sorted(devices.nulled) == ["t2", "t4"]
        assert devices.tokens_by_user["u1"] == ["t1", "t3", "t5"]
        assert len(provider.sent) == 1
        assert len(history.records) == 1

    @pytest.mark.asyncio
    async def test_transient_errors_do_not_null(self, delivery, devices, provider, post_context):
        devices.tokens_by_user = {"u1": ["t1", "t2"]}
        provider.error_codes = {"t1": "messaging/server-unavailable"}

        await delivery.send_to_user("u1", K.POST_CREATED, post_context)

        assert devices.nulled == []

    @pytest.mark.asyncio
    async def test_provider_failure_is_swallowed_and_history_kept(
        self, delivery, devices, provider, history, post_context
    ):
        devices.tokens_by_user = {"u1": ["t1"]}
        provider.send_error = RuntimeError("network down")

        assert await delivery.send_to_user("u1", K.POST_CREATED, post_context) is True
        assert devices.nulled == []
        assert len(history.records) == 1

    @pytest.mark.asyncio
    async def test_history_stores_serialized_payload(self, delivery, devices, history, post_context):
        devices.tokens_by_user = {"u1": ["t1"]}
        await delivery.send_to_user("u1", K.POST_CREATED, post_context)
        user_id, kind, payload = history.records[0]
        assert (user_id, kind) == ("u1", "post-created")
        assert json.loads(payload)["data"]["postId"] == "p1"


class TestResultAlignment:
    def test_aligned_results(self):
        tokens = ["a", "b", "c"]
        results = [
            ProviderResult(token="a", success=True),
            ProviderResult(token="b", success=False, error_code=NOT_REGISTERED),
            ProviderResult(token="c", success=False, error_code="messaging/invalid-argument"),
        ]
        assert invalid_tokens(tokens, results) == ["b", "c"]

    def test_length_mismatch_prunes_nothing(self):
        results = [ProviderResult(token="a", success=False, error_code=NOT_REGISTERED)]
        assert invalid_tokens(["a", "b"], results) == []

    def test_reordered_results_prune_nothing(self):
        results = [
            ProviderResult(token="b", success=False, error_code=NOT_REGISTERED),
            ProviderResult(token="a", success=True),
        ]
        assert invalid_tokens(["a", "b"], results) == []

    @pytest.mark.asyncio
    async def test_engine_skips_pruning_on_misaligned_response(self, delivery, devices, provider, post_context):
        devices.tokens_by_user = {"u1": ["t1", "t2"]}
        provider.results_override = [ProviderResult(token="t1", success=False, error_code=NOT_REGISTERED)]
        await delivery.send_to_user("u1", K.POST_CREATED, post_context)
        assert devices.nulled == []


class TestIsolation:
    @pytest.mark.asyncio
    async def test_one_user_failure_does_not_abort_others(self, delivery, devices, provider, history, post_context):
        devices.tokens_by_user = {"u1": ["t1"], "u3": ["t3"]}
        devices.fail_for = {"u2"}

        await delivery.deliver_to_users(["u1", "u2", "u3"], K.POST_CREATED, post_context)

        assert sorted(r[0] for r in history.records) == ["u1", "u3"]

    @pytest.mark.asyncio
    async def test_selected_as_speaker_without_audit_history_skips_the_job(
        self, delivery, devices, provider, history
    ):
        devices.tokens_by_user = {"u1": ["t1"], "u2": ["t2"]}
        await delivery.deliver_to_users(["u1", "u2"], K.SELECTED_AS_SPEAKER, {"chatRoomId": "room-1"})
        assert provider.sent == []
        assert history.records == []

    @pytest.mark.asyncio
    async def test_missing_audit_history_fails_only_the_direct_send(self, delivery, devices, provider):
        devices.tokens_by_user = {"u1": ["t1"]}
        assert await delivery.send_to_user_now("u1", K.SELECTED_AS_SPEAKER, {"chatRoomId": "room-1"}) is False
        assert provider.sent == []

    @pytest.mark.asyncio
    async def test_selected_as_speaker_falls_back_to_previous_speaker(self, delivery, devices, provider, audit, content):
        devices.tokens_by_user = {"u1": ["t1"]}
        audit.previous["room-1"] = [AuditRecord(user_id="prev", chat_room_id="room-1")]
        content.users["prev"] = UserProfile(id="prev", username="previous")

        assert await delivery.send_to_user("u1", K.SELECTED_AS_SPEAKER, {"chatRoomId": "room-1"}) is True
        _, message = provider.sent[0]
        assert message.data["selectedBy"] == "prev"

    @pytest.mark.asyncio
    async def test_send_to_user_now_never_raises(self, delivery, devices):
        devices.fail_for = {"u1"}
        assert await delivery.send_to_user_now("u1", K.POSTING_TIPS, {"chatRoomId": "room-1"}) is False


class TestFanOutLimits:
    @pytest.fixture
    def tracked(self, devices, content):
        """Count concurrent device lookups and chat room fetches."""
        stats = {"in_flight": 0, "max": 0, "chat_room_fetches": 0}
        devices_for_user = devices.devices_for_user
        get_chat_room = content.get_chat_room

        async def slow_devices_for_user(user_id):
            stats["in_flight"] += 1
            stats["max"] = max(stats["max"], stats["in_flight"])
            try:
                await asyncio.sleep(0.001)
                return await devices_for_user(user_id)
            finally:
                stats["in_flight"] -= 1

        async def counted_get_chat_room(chat_room_id):
            stats["chat_room_fetches"] += 1
            return await get_chat_room(chat_room_id)

        devices.devices_for_user = slow_devices_for_user
        content.get_chat_room = counted_get_chat_room
        return stats

    @pytest.fixture
    def bounded(self, queue, devices, preferences, provider, history, content, audit):
        return DeliveryEngine(
            queue=queue,
            devices=devices,
            preferences=preferences,
            provider=provider,
            history=history,
            content=content,
            audit=audit,
            max_in_flight=5,
        )

    @pytest.mark.asyncio
    async def test_users_in_flight_are_capped(self, bounded, tracked, devices, history, post_context):
        user_ids = [f"u{i}" for i in range(200)]
        devices.tokens_by_user = {u: [f"t-{u}"] for u in user_ids}

        await bounded.deliver_to_users(user_ids, K.POST_CREATED, post_context)

        assert tracked["max"] <= 5
        assert tracked["in_flight"] == 0
        assert len(history.records) == 200

    @pytest.mark.asyncio
    async def test_shared_context_resolved_once_per_job(self, bounded, tracked, devices, provider, post_context):
        user_ids = [f"u{i}" for i in range(20)]
        devices.tokens_by_user = {u: [f"t-{u}"] for u in user_ids}

        await bounded.deliver_to_users(user_ids, K.POST_CREATED, post_context)

        assert tracked["chat_room_fetches"] == 1
        assert len(provider.sent) == 20

    def test_default_cap_comes_from_settings(self, delivery):
        assert delivery.max_in_flight == settings.delivery_max_in_flight_users


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueue_writes_wire_contract(self, delivery, queue):
        await delivery.enqueue_fan_out(["u1", "u2"], K.POST_CREATED, {"chatRoomId": "room-1", "postId": "p1"})

        name, payload = queue.jobs[0]
        assert name == JOB_SEND_NOTIFICATION
        assert payload == {
            "userIds": ["u1", "u2"],
            "kind": "post-created",
            "context": {"chatRoomId": "room-1", "postId": "p1"},
        }

    @pytest.mark.asyncio
    async def test_queue_failure_never_reaches_caller(self, delivery, queue):
        queue.fail_with = RuntimeError("queue down")
        await delivery.enqueue_fan_out(["u1"], K.POST_CREATED, {"chatRoomId": "room-1"})
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_no_recipients_enqueues_nothing(self, delivery, queue):
        await delivery.enqueue_fan_out([], K.POST_CREATED, {"chatRoomId": "room-1"})
        assert queue.jobs == []

    @pytest.mark.asyncio
    async def test_reaction_context_resolves_entities(self, delivery, devices, provider, content):
        devices.tokens_by_user = {"owner": ["t1"]}
        content.users["actor"] = UserProfile(id="actor", username="grace")
        content.reactions["r1"] = Reaction(id="r1", symbol="👏", comment_id="c1")

        await delivery.send_to_user(
            "owner", K.REACTION_ADDED, {"chatRoomId": "room-1", "userId": "actor", "reactionId": "r1"}
        )

        _, message = provider.sent[0]
        assert message.body == "grace reacted 👏 to your comment."
