"""
Payload builders: one pure function per notification kind.

Each builder takes the resolved PayloadContext and returns a PushMessage. Required
entities are checked by the handler registry before a builder runs, so builders only
deal with optional fields.
"""
from __future__ import annotations

from typing import Any

from community_push.services.push.kinds import PushNotificationKind as K
from community_push.services.push.types import PayloadContext, PushMessage

_PREVIEW_CHARS = 120


def _preview(text: str | None) -> str:
    text = (text or "").strip()
    if len(text) > _PREVIEW_CHARS:
        return text[: _PREVIEW_CHARS - 1].rstrip() + "…"
    return text


def _data(kind: K, ctx: PayloadContext, **extra: Any) -> dict[str, str]:
    data = {"type": kind.value}
    if ctx.chat_room is not None:
        data["chatRoomId"] = ctx.chat_room.id
    for key, value in extra.items():
        if value is not None:
            data[key] = str(value)
    return data


def _community_message(kind: K, ctx: PayloadContext, body: str, **extra: Any) -> PushMessage:
    return PushMessage(
        title=ctx.chat_room.name,
        body=body,
        data=_data(kind, ctx, **extra),
        image=ctx.chat_room.image or None,
    )


def build_selected_as_speaker(ctx: PayloadContext) -> PushMessage:
    """ctx.user is whoever selected the speaker (or the previous speaker, from audit history)."""
    selected_by = ctx.user.id if ctx.user else None
    return _community_message(
        K.SELECTED_AS_SPEAKER,
        ctx,
        "You're on the mic! It's your turn to post.",
        selectedBy=selected_by,
    )


def build_posting_tips(ctx: PayloadContext) -> PushMessage:
    return _community_message(
        K.POSTING_TIPS,
        ctx,
        "Need inspiration? Check out our tips for a great post.",
    )


def build_selected_as_next_speaker(ctx: PayloadContext) -> PushMessage:
    when = f" {ctx.time}" if ctx.time else ""
    return _community_message(
        K.SELECTED_AS_NEXT_SPEAKER,
        ctx,
        f"{ctx.user.display_name} picked you as the next speaker{when}.",
        selectedBy=ctx.user.id,
        time=ctx.time,
    )


def build_tagged_in_comment(ctx: PayloadContext) -> PushMessage:
    author = ctx.comment.author.display_name if ctx.comment.author else "Someone"
    return _community_message(
        K.TAGGED_IN_COMMENT,
        ctx,
        f"{author} mentioned you: {_preview(ctx.comment.text)}",
        commentId=ctx.comment.id,
        postId=ctx.comment.post_id,
    )


def build_tagged_in_post(ctx: PayloadContext) -> PushMessage:
    return _community_message(
        K.TAGGED_IN_POST,
        ctx,
        f"You were mentioned in a post: {_preview(ctx.post.title)}",
        postId=ctx.post.id,
    )


def build_reminder(ctx: PayloadContext) -> PushMessage:
    remaining = f" Your turn ends in {ctx.time}." if ctx.time else ""
    return _community_message(
        K.REMINDER_FOR_POST_CREATION,
        ctx,
        f"Don't forget to post while you have the mic!{remaining}",
        time=ctx.time,
    )


def build_user_redeemed_invite_link(ctx: PayloadContext) -> PushMessage:
    return _community_message(
        K.USER_REDEEMED_INVITE_LINK,
        ctx,
        f"{ctx.user.display_name} joined using your invite link.",
        userId=ctx.user.id,
    )


def build_reaction_added(ctx: PayloadContext) -> PushMessage:
    return _community_message(
        K.REACTION_ADDED,
        ctx,
        f"{ctx.user.display_name} reacted {ctx.reaction.symbol} to your comment.",
        reactionId=ctx.reaction.id,
        commentId=ctx.reaction.comment_id,
    )


def build_reaction_added_others(ctx: PayloadContext) -> PushMessage:
    symbol = ctx.reaction.notification_symbol or ctx.reaction.symbol
    return _community_message(
        K.REACTION_ADDED_OTHERS,
        ctx,
        f"{ctx.user.display_name} reacted {symbol} to: {_preview(ctx.comment.text)}",
        reactionId=ctx.reaction.id,
        commentId=ctx.comment.id,
        postId=ctx.comment.post_id,
    )


def build_post_created(ctx: PayloadContext) -> PushMessage:
    return _community_message(
        K.POST_CREATED,
        ctx,
        f"New post: {_preview(ctx.post.title)}",
        postId=ctx.post.id,
    )


def build_comment_created(ctx: PayloadContext) -> PushMessage:
    author = ctx.comment.author.display_name if ctx.comment.author else "Someone"
    return _community_message(
        K.ALL_COMMENTS,
        ctx,
        f"{author} commented: {_preview(ctx.comment.text)}",
        commentId=ctx.comment.id,
        postId=ctx.comment.post_id,
    )


def build_poll_vote(ctx: PayloadContext) -> PushMessage:
    return _community_message(
        K.POLL_VOTE,
        ctx,
        f"{ctx.user.display_name} voted on the poll in {_preview(ctx.post.title) or 'the live post'}.",
        postId=ctx.post.id,
    )


def build_community_announcement(ctx: PayloadContext) -> PushMessage:
    return _community_message(
        K.COMMUNITY_ANNOUNCEMENT,
        ctx,
        _preview(ctx.message.text),
        messageId=ctx.message.id,
    )


def build_direct_message(ctx: PayloadContext) -> PushMessage:
    sender = ctx.message.sender.display_name if ctx.message.sender else "New message"
    return PushMessage(
        title=sender,
        body=_preview(ctx.message.text),
        data=_data(K.DIRECT_MESSAGE, ctx, chatId=ctx.message.chat_id, messageId=ctx.message.id),
        image=(ctx.message.sender.profile_picture if ctx.message.sender else None) or None,
    )


def build_message_reaction_added(ctx: PayloadContext) -> PushMessage:
    return PushMessage(
        title=ctx.user.display_name,
        body=f"Reacted to your message: {_preview(ctx.message.text)}",
        data=_data(
            K.MESSAGE_REACTION_ADDED,
            ctx,
            chatId=ctx.message.chat_id,
            messageId=ctx.message.id,
            userId=ctx.user.id,
        ),
        image=ctx.user.profile_picture or None,
    )


def build_league_weekly_results(ctx: PayloadContext) -> PushMessage:
    metadata = ctx.metadata or {}
    rank = metadata.get("rank")
    body = "This week's league results are in."
    if rank is not None:
        body = f"This week's league results are in. You finished #{rank}."
    return _community_message(
        K.LEAGUE_WEEKLY_RESULTS,
        ctx,
        body,
        leagueId=metadata.get("leagueId"),
        rank=rank,
    )
