"""
Community API client: read-only lookups of chat rooms, memberships, posts, audit history,
leagues and daily statistics, plus the realtime "post views updated" event. Lowest level;
parses JSON into the push value types and nothing else.

404 responses map to None (or an empty list); any other failure raises CommunityApiError.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

import httpx

from community_push.config import settings
from community_push.core.errors import CommunityApiError
from community_push.services.push.types import (
    AuditRecord,
    ChatMessage,
    ChatRoom,
    Comment,
    DailySettingsCount,
    Membership,
    Post,
    Reaction,
    SpeakerSlot,
    UserProfile,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_user(d: dict[str, Any] | None) -> UserProfile | None:
    if not d:
        return None
    return UserProfile(
        id=d["id"],
        username=d.get("username"),
        first_name=d.get("firstName"),
        last_name=d.get("lastName"),
        email=d.get("email"),
        public_address=d.get("publicAddress"),
        profile_picture=d.get("profilePicture"),
        email_opt_in=bool(d.get("emailOptIn", False)),
        direct_messages_notifications=bool(d.get("directMessagesNotifications", True)),
    )


def parse_chat_room(d: dict[str, Any]) -> ChatRoom:
    return ChatRoom(
        id=d["id"],
        name=d.get("name") or "",
        image=d.get("image"),
        notification_image=d.get("notificationImage"),
    )


def parse_post(d: dict[str, Any]) -> Post:
    # Poll ids come from post contents of type "poll"
    poll_ids = tuple(
        c.get("content")
        for c in d.get("postContents") or []
        if c.get("contentType") == "poll" and c.get("content")
    )
    return Post(
        id=d["id"],
        user_id=d.get("userId") or "",
        chat_room_id=d.get("chatRoomId") or "",
        title=d.get("title") or "",
        conversation_id=d.get("conversationId"),
        poll_ids=poll_ids,
    )


def parse_comment(d: dict[str, Any]) -> Comment:
    return Comment(
        id=d["id"],
        post_id=d.get("postId") or "",
        user_id=d.get("userId") or "",
        text=d.get("text") or "",
        author=parse_user(d.get("user")),
    )


def parse_reaction(d: dict[str, Any]) -> Reaction:
    # User reactions nest the reaction definition (symbol, notificationSymbol)
    definition = d.get("reaction") or d
    return Reaction(
        id=d["id"],
        symbol=definition.get("symbol") or "",
        notification_symbol=definition.get("notificationSymbol"),
        comment_id=d.get("commentId"),
    )


def parse_message(d: dict[str, Any]) -> ChatMessage:
    return ChatMessage(
        id=d["id"],
        chat_id=d.get("chatId") or "",
        sender_id=d.get("senderId") or "",
        text=d.get("text") or "",
        sender=parse_user(d.get("sender")),
    )


def _optional_int(value: Any) -> int | None:
    return int(value) if value is not None and value != "" else None


def parse_daily_count(d: dict[str, Any]) -> DailySettingsCount:
    return DailySettingsCount(
        date=str(d["date"])[:10],
        commentator_count=_optional_int(d.get("commentatorCount")),
        all_comments_count=_optional_int(d.get("allCommentsCount")),
        mentions_count=_optional_int(d.get("mentions")),
        post_created_count=_optional_int(d.get("postCreatedCount")),
    )


def parse_speaker(d: dict[str, Any] | None) -> SpeakerSlot | None:
    if not d or not d.get("userId") or not d.get("endingAt"):
        return None
    return SpeakerSlot(
        user_id=d["userId"],
        ending_at=_parse_datetime(d["endingAt"]),
        user=parse_user(d.get("user")),
    )


class CommunityApiClient:
    """Implements the membership, content, audit, league, statistics and realtime collaborators over HTTP."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.community_api_url).rstrip("/")
        self._token = token if token is not None else settings.community_api_token
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        h = {"Accept": "application/json"}
        if self._token:
            h["Authorization"] = f"Bearer {self._token}"
        return h

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as c:
                r = await c.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise CommunityApiError(f"{method} {path} failed: {e}") from e
        if r.status_code == 404:
            return None
        if not r.is_success:
            raise CommunityApiError(f"{method} {path} returned {r.status_code}: {r.text[:500] if r.text else ''}")
        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise CommunityApiError(f"{method} {path} returned invalid JSON") from e

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    # - Membership

    async def participation_level(self, user_id: str, community_id: str) -> str | None:
        membership = await self.get_membership(user_id, community_id)
        return membership.mic_level if membership else None

    async def get_membership(self, user_id: str, community_id: str) -> Membership | None:
        data = await self._get(f"/chat-rooms/{community_id}/members/{user_id}")
        if not data or not data.get("micLevel"):
            return None
        return Membership(
            user_id=user_id,
            chat_room_id=community_id,
            mic_level=data["micLevel"],
            incognito=bool(data.get("incognito")),
        )

    async def all_memberships_for_user(self, user_id: str) -> list[Membership]:
        data = await self._get(f"/users/{user_id}/memberships") or []
        return [
            Membership(
                user_id=user_id,
                chat_room_id=m["chatRoomId"],
                mic_level=m.get("micLevel") or "",
                incognito=bool(m.get("incognito")),
            )
            for m in data
            if m.get("chatRoomId")
        ]

    async def current_speaker(self, community_id: str) -> SpeakerSlot | None:
        return parse_speaker(await self._get(f"/chat-rooms/{community_id}/speaker"))

    async def has_live_post(self, community_id: str) -> bool:
        return bool(await self.get_live_posts(community_id))

    # - Content

    async def get_chat_room(self, chat_room_id: str) -> ChatRoom | None:
        data = await self._get(f"/chat-rooms/{chat_room_id}")
        return parse_chat_room(data) if data else None

    async def list_chat_rooms(self, *, page: int, limit: int) -> list[ChatRoom]:
        data = await self._get("/chat-rooms", params={"page": page, "limit": limit}) or []
        if isinstance(data, dict):
            data = data.get("items") or []
        return [parse_chat_room(d) for d in data]

    async def get_user(self, user_id: str) -> UserProfile | None:
        return parse_user(await self._get(f"/users/{user_id}"))

    async def get_post(self, post_id: str) -> Post | None:
        data = await self._get(f"/posts/{post_id}")
        return parse_post(data) if data else None

    async def get_comment(self, comment_id: str) -> Comment | None:
        data = await self._get(f"/comments/{comment_id}")
        return parse_comment(data) if data else None

    async def get_reaction(self, reaction_id: str) -> Reaction | None:
        data = await self._get(f"/user-reactions/{reaction_id}")
        return parse_reaction(data) if data else None

    async def get_message(self, message_id: str) -> ChatMessage | None:
        data = await self._get(f"/messages/{message_id}")
        return parse_message(data) if data else None

    async def get_live_posts(self, chat_room_id: str) -> list[Post]:
        data = await self._get(f"/chat-rooms/{chat_room_id}/live-posts") or []
        return [parse_post(d) for d in data]

    # - Statistics

    async def commentator_count(self, chat_room_id: str) -> int:
        data = await self._get(f"/chat-rooms/{chat_room_id}/members/count", params={"micLevel": "commentator"})
        return int((data or {}).get("count") or 0)

    async def daily_counts(self, chat_room_id: str, start_date: date, end_date: date) -> list[DailySettingsCount]:
        data = await self._get(
            f"/chat-rooms/{chat_room_id}/daily-counts",
            params={"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
        ) or []
        return [parse_daily_count(d) for d in data if d.get("date")]

    # - Audit, leagues, realtime

    async def find_previous_speaker(self, chat_room_id: str) -> list[AuditRecord]:
        data = await self._get(f"/chat-rooms/{chat_room_id}/audit/previous-speaker") or []
        return [
            AuditRecord(
                user_id=d["userId"],
                chat_room_id=chat_room_id,
                created_at=_parse_datetime(d.get("createdAt")),
            )
            for d in data
            if d.get("userId")
        ]

    async def has_active_league(self, chat_room_id: str) -> bool:
        data = await self._get(f"/chat-rooms/{chat_room_id}/leagues", params={"active": "true"}) or []
        return len(data) > 0

    async def emit_post_views_updated(self, chat_room_id: str) -> None:
        await self._request("POST", f"/chat-rooms/{chat_room_id}/events/post-views-updated")
        logger.debug("Emitted post views updated for chat room %s", chat_room_id)
