"""Notification kinds carried on the wire (job payloads, history rows)."""
import enum


class PushNotificationKind(str, enum.Enum):
    SELECTED_AS_SPEAKER = "selected-as-speaker"
    POSTING_TIPS = "posting-tips"
    SELECTED_AS_NEXT_SPEAKER = "selected-as-next-speaker"
    REMINDER_FOR_POST_CREATION = "reminder-for-post-creation"
    USER_REDEEMED_INVITE_LINK = "user-redeemed-invite-link"
    LEAGUE_WEEKLY_RESULTS = "league-weekly-results"
    TAGGED_IN_COMMENT = "tagged-in-comment"
    TAGGED_IN_POST = "tagged-in-post"
    ALL_COMMENTS = "all-comments"
    POLL_VOTE = "poll-vote"
    POST_CREATED = "post-created"
    REACTION_ADDED = "reaction-added"
    REACTION_ADDED_OTHERS = "reaction-added-others"
    COMMUNITY_ANNOUNCEMENT = "community-announcement"
    DIRECT_MESSAGE = "direct-message"
    MESSAGE_REACTION_ADDED = "message-reaction-added"


def parse_kind(value: "str | PushNotificationKind") -> "PushNotificationKind | None":
    """Return the enum member for value, or None for kinds this service does not know."""
    if isinstance(value, PushNotificationKind):
        return value
    try:
        return PushNotificationKind(value)
    except ValueError:
        return None
