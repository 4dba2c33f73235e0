"""Tests for the community API client using httpx.MockTransport."""
from datetime import date, datetime, timezone

import httpx
import pytest

from community_push.core.errors import CommunityApiError
from community_push.services.community.client import CommunityApiClient, parse_daily_count, parse_post, parse_reaction

ROUTES = {
    "/chat-rooms/room-1": {"id": "room-1", "name": "Night Owls", "image": "https://img/owl.png"},
    "/chat-rooms/room-1/members/u1": {"micLevel": "speaker"},
    "/chat-rooms/room-1/members/u3": {"micLevel": "commentator", "incognito": True},
    "/chat-rooms/room-1/members/count": {"count": 7},
    "/chat-rooms/room-1/daily-counts": [
        {"date": "2026-01-02T00:00:00Z", "commentatorCount": "5", "allCommentsCount": 3, "postCreatedCount": None},
        {"allCommentsCount": 1},
    ],
    "/chat-rooms/room-1/speaker": {
        "userId": "u1",
        "endingAt": "2026-01-05T20:00:00Z",
        "user": {"id": "u1", "firstName": "Ada", "email": "ada@example.com", "emailOptIn": True},
    },
    "/chat-rooms/room-1/live-posts": [
        {
            "id": "p1",
            "userId": "u1",
            "chatRoomId": "room-1",
            "postContents": [
                {"contentType": "text", "content": "hello"},
                {"contentType": "poll", "content": "poll-9"},
            ],
        }
    ],
    "/chat-rooms/room-1/audit/previous-speaker": [{"userId": "u0", "createdAt": "2026-01-04T10:00:00Z"}],
    "/chat-rooms/room-1/leagues": [{"id": "lg-1"}],
    "/users/u1/memberships": [{"chatRoomId": "room-1", "micLevel": "viewer"}, {"micLevel": "viewer"}],
    "/chat-rooms": {"items": [{"id": "room-1", "name": "Night Owls"}, {"id": "room-2", "name": "Early Birds"}]},
    "/user-reactions/r1": {"id": "r1", "commentId": "c1", "reaction": {"symbol": "👏", "notificationSymbol": "👏"}},
}


class Api:
    def __init__(self, routes=ROUTES, status=None):
        self.routes = routes
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status:
            return httpx.Response(self.status, text="upstream error")
        path = request.url.path.removeprefix("/api")
        if request.method == "POST":
            return httpx.Response(204)
        if path not in self.routes:
            return httpx.Response(404, json={"message": "not found"})
        return httpx.Response(200, json=self.routes[path])


def _client(api):
    return CommunityApiClient("https://community.test/api/", "secret", transport=httpx.MockTransport(api))


class TestLookups:
    @pytest.mark.asyncio
    async def test_chat_room_and_auth_header(self):
        api = Api()
        room = await _client(api).get_chat_room("room-1")
        assert room.name == "Night Owls"
        assert api.requests[0].headers["Authorization"] == "Bearer secret"
        assert str(api.requests[0].url) == "https://community.test/api/chat-rooms/room-1"

    @pytest.mark.asyncio
    async def test_not_found_is_none(self):
        client = _client(Api())
        assert await client.get_chat_room("missing") is None
        assert await client.get_user("missing") is None
        assert await client.participation_level("u2", "room-1") is None
        assert await client.get_live_posts("room-2") == []

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        with pytest.raises(CommunityApiError):
            await _client(Api(status=500)).get_chat_room("room-1")

    @pytest.mark.asyncio
    async def test_speaker_slot(self):
        speaker = await _client(Api()).current_speaker("room-1")
        assert speaker.user_id == "u1"
        assert speaker.ending_at == datetime(2026, 1, 5, 20, 0, tzinfo=timezone.utc)
        assert speaker.user.email_opt_in is True
        assert speaker.user.display_name == "Ada"

    @pytest.mark.asyncio
    async def test_memberships_skip_rows_without_community(self):
        memberships = await _client(Api()).all_memberships_for_user("u1")
        assert [(m.chat_room_id, m.mic_level) for m in memberships] == [("room-1", "viewer")]

    @pytest.mark.asyncio
    async def test_live_posts_and_leagues(self):
        client = _client(Api())
        assert await client.has_live_post("room-1") is True
        assert await client.has_live_post("room-2") is False
        assert await client.has_active_league("room-1") is True
        assert await client.participation_level("u1", "room-1") == "speaker"

    @pytest.mark.asyncio
    async def test_list_chat_rooms_accepts_paged_envelope(self):
        api = Api()
        rooms = await _client(api).list_chat_rooms(page=1, limit=100)
        assert [r.id for r in rooms] == ["room-1", "room-2"]
        assert api.requests[0].url.params["limit"] == "100"

    @pytest.mark.asyncio
    async def test_membership_carries_incognito(self):
        client = _client(Api())
        member = await client.get_membership("u3", "room-1")
        assert member.mic_level == "commentator"
        assert member.incognito is True
        assert (await client.get_membership("u1", "room-1")).incognito is False
        assert await client.get_membership("u2", "room-1") is None

    @pytest.mark.asyncio
    async def test_statistics(self):
        api = Api()
        client = _client(api)
        assert await client.commentator_count("room-1") == 7
        assert api.requests[0].url.params["micLevel"] == "commentator"

        days = await client.daily_counts("room-1", date(2026, 1, 1), date(2026, 1, 3))
        assert [(d.date, d.commentator_count, d.all_comments_count, d.post_created_count) for d in days] == [
            ("2026-01-02", 5, 3, None)
        ]
        assert api.requests[1].url.params["startDate"] == "2026-01-01"
        assert api.requests[1].url.params["endDate"] == "2026-01-03"

    @pytest.mark.asyncio
    async def test_statistics_missing_community(self):
        client = _client(Api())
        assert await client.commentator_count("room-2") == 0
        assert await client.daily_counts("room-2", date(2026, 1, 1), date(2026, 1, 3)) == []

    @pytest.mark.asyncio
    async def test_previous_speaker_audit(self):
        records = await _client(Api()).find_previous_speaker("room-1")
        assert records[0].user_id == "u0"
        assert records[0].created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_emit_post_views_updated(self):
        api = Api()
        await _client(api).emit_post_views_updated("room-1")
        assert api.requests[0].method == "POST"
        assert api.requests[0].url.path == "/api/chat-rooms/room-1/events/post-views-updated"


class TestParsers:
    def test_post_poll_ids_come_from_poll_contents(self):
        post = parse_post(ROUTES["/chat-rooms/room-1/live-posts"][0])
        assert post.poll_ids == ("poll-9",)

    def test_reaction_reads_nested_definition(self):
        reaction = parse_reaction(ROUTES["/user-reactions/r1"])
        assert reaction.symbol == "👏"
        assert reaction.notification_symbol == "👏"
        assert reaction.comment_id == "c1"

    def test_reaction_without_notification_symbol(self):
        reaction = parse_reaction({"id": "r2", "reaction": {"symbol": "❤️"}})
        assert reaction.notification_symbol is None

    def test_daily_count_missing_values_stay_none(self):
        counts = parse_daily_count({"date": "2026-01-02", "mentions": ""})
        assert counts.mentions_count is None
        assert counts.commentator_count is None
