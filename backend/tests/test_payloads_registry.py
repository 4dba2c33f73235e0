"""Tests for the handler registry and the per-kind payload builders."""
import pytest

from community_push.services.push.kinds import PushNotificationKind as K, parse_kind
from community_push.services.push.registry import get_handler, list_kinds, missing_kinds
from community_push.services.push.types import (
    ChatMessage,
    ChatRoomSummary,
    Comment,
    PayloadContext,
    Post,
    Reaction,
    UserProfile,
)


@pytest.fixture
def full_context():
    author = UserProfile(id="u-author", first_name="Ada", username="ada")
    return PayloadContext(
        chat_room=ChatRoomSummary(id="room-1", name="Night Owls", image="https://img/owl.png"),
        user=UserProfile(id="u-actor", username="grace", profile_picture="https://img/grace.png"),
        comment=Comment(id="c1", post_id="p1", user_id="u-author", text="Great episode", author=author),
        post=Post(id="p1", user_id="u-author", chat_room_id="room-1", title="Friday recap"),
        reaction=Reaction(id="r1", symbol="🔥", notification_symbol="🔥", comment_id="c1"),
        message=ChatMessage(id="m1", chat_id="chat-9", sender_id="u-author", text="hey there", sender=author),
        time="6 hours",
        metadata={"rank": 2, "leagueId": "lg-1"},
    )


class TestRegistry:
    def test_every_kind_has_a_handler(self):
        assert missing_kinds() == set()
        assert set(list_kinds()) == set(K)

    def test_unknown_kind_has_no_handler(self):
        assert parse_kind("not-a-kind") is None
        assert get_handler("not-a-kind") is None

    def test_handler_reports_missing_context(self):
        handler = get_handler(K.REACTION_ADDED_OTHERS)
        missing = handler.missing_context(PayloadContext(chat_room=ChatRoomSummary(id="room-1", name="x")))
        assert set(missing) == {"user", "reaction", "comment"}


class TestBuilders:
    @pytest.mark.parametrize("kind", list(K))
    def test_builds_with_string_data(self, kind, full_context):
        handler = get_handler(kind)
        assert handler.missing_context(full_context) == []
        message = handler.build(full_context)
        assert message.title
        assert message.data["type"] == kind.value
        assert all(isinstance(v, str) for v in message.data.values())

    def test_community_kinds_carry_chat_room(self, full_context):
        message = get_handler(K.POST_CREATED).build(full_context)
        assert message.title == "Night Owls"
        assert message.data["chatRoomId"] == "room-1"
        assert message.data["postId"] == "p1"
        assert message.image == "https://img/owl.png"

    def test_reminder_mentions_remaining_time(self, full_context):
        message = get_handler(K.REMINDER_FOR_POST_CREATION).build(full_context)
        assert "6 hours" in message.body
        assert message.data["time"] == "6 hours"

    def test_reaction_added_names_actor(self, full_context):
        message = get_handler(K.REACTION_ADDED).build(full_context)
        assert message.body.startswith("grace reacted")
        assert message.data["reactionId"] == "r1"

    def test_direct_message_uses_sender(self, full_context):
        message = get_handler(K.DIRECT_MESSAGE).build(full_context)
        assert message.title == "Ada"
        assert message.data["chatId"] == "chat-9"

    def test_league_results_rank(self, full_context):
        message = get_handler(K.LEAGUE_WEEKLY_RESULTS).build(full_context)
        assert "#2" in message.body
        assert message.data["rank"] == "2"

    def test_long_text_is_truncated(self, full_context):
        full_context.comment = Comment(id="c1", post_id="p1", user_id="u", text="x" * 500)
        message = get_handler(K.ALL_COMMENTS).build(full_context)
        assert len(message.body) < 200
        assert message.body.endswith("…")
