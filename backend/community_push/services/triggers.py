"""
Notification triggers called by the community platform's own flows (speaker selection,
reactions, poll votes) plus the audience queries they fan out to.
"""
from __future__ import annotations

import logging
from typing import Sequence

from community_push.core.errors import ForbiddenError, NotFoundError
from community_push.services.push.base import ContentDirectory, MembershipSource, PreferenceStore
from community_push.services.push.delivery import DeliveryEngine
from community_push.services.push.kinds import PushNotificationKind
from community_push.services.push.types import MicLevel, Post

logger = logging.getLogger(__name__)

# Mic levels allowed to vote in polls; incognito members never vote
VOTER_LEVELS = frozenset({MicLevel.COMMENTATOR.value, MicLevel.SPEAKER.value})


class NotificationTriggers:
    def __init__(
        self,
        *,
        engine: DeliveryEngine,
        preferences: PreferenceStore,
        membership: MembershipSource,
        content: ContentDirectory,
    ) -> None:
        self.engine = engine
        self.preferences = preferences
        self.membership = membership
        self.content = content

    # - Audiences

    async def users_opted_in_for_post_created(self, community_id: str, excluded_user_id: str) -> list[str]:
        return await self.preferences.opted_in_users(community_id, "post_created", [excluded_user_id])

    async def users_opted_in_for_comments(self, community_id: str, excluded_user_id: str) -> list[str]:
        return await self.preferences.opted_in_users(community_id, "all_comments", [excluded_user_id])

    async def users_opted_in_for_reactions(self, community_id: str, excluded_user_ids: Sequence[str]) -> list[str]:
        return await self.preferences.opted_in_users(community_id, "reaction_notification", list(excluded_user_ids))

    # - Triggers

    async def notify_selected_as_next_speaker(
        self,
        creator_id: str,
        next_speaker_id: str,
        time: str,
        community_id: str,
    ) -> bool:
        """Tell next_speaker_id that creator_id picked them. Single recipient, sent directly."""
        return await self.engine.send_to_user_now(
            next_speaker_id,
            PushNotificationKind.SELECTED_AS_NEXT_SPEAKER,
            {"chatRoomId": community_id, "userId": creator_id, "time": time},
        )

    async def notify_reaction_added(
        self,
        comment_owner_id: str,
        actor_id: str,
        community_id: str,
        reaction_id: str,
        comment_id: str,
    ) -> None:
        """
        Notify the comment owner directly; when the reaction carries a notification symbol,
        also fan out to members opted in to reactions (excluding the actor and the owner).
        """
        await self.engine.send_to_user_now(
            comment_owner_id,
            PushNotificationKind.REACTION_ADDED,
            {"chatRoomId": community_id, "userId": actor_id, "reactionId": reaction_id},
        )

        reaction = await self.content.get_reaction(reaction_id)
        if reaction is None or not reaction.notification_symbol:
            return
        user_ids = await self.users_opted_in_for_reactions(community_id, [actor_id, comment_owner_id])
        await self.engine.enqueue_fan_out(
            user_ids,
            PushNotificationKind.REACTION_ADDED_OTHERS,
            {
                "chatRoomId": community_id,
                "userId": actor_id,
                "reactionId": reaction_id,
                "commentId": comment_id,
            },
        )

    async def live_post_for_poll(self, poll_id: str, community_id: str) -> Post:
        """The community's live post, which must carry poll_id. Raises ForbiddenError otherwise."""
        if await self.content.get_chat_room(community_id) is None:
            raise NotFoundError(f"Community {community_id} not found")
        live_posts = await self.content.get_live_posts(community_id)
        if not live_posts or poll_id not in live_posts[0].poll_ids:
            raise ForbiddenError("This poll is not associated with a currently live post.")
        return live_posts[0]

    async def notify_poll_vote(self, poll_id: str, community_id: str, voter_id: str) -> int:
        """
        Fan out poll-vote to members opted in to comments, excluding the voter.
        Returns the number of recipients enqueued.
        """
        live_post = await self.live_post_for_poll(poll_id, community_id)
        member = await self.membership.get_membership(voter_id, community_id)
        if member is None or member.mic_level not in VOTER_LEVELS or member.incognito:
            raise ForbiddenError("Only members of the community with full-access can vote.")

        user_ids = await self.users_opted_in_for_comments(community_id, voter_id)
        await self.engine.enqueue_fan_out(
            user_ids,
            PushNotificationKind.POLL_VOTE,
            {"chatRoomId": community_id, "userId": voter_id, "postId": live_post.id},
        )
        return len(user_ids)
