"""
Preference gate: decide whether a notification kind may be sent to a user.

Pure functions only. The delivery engine loads the (user, community) preference record and
the user profile, then asks the kind's gate. Three families of rules:

- unconditional allow (speaker selection, reminders, tips, invites, league results)
- preference field with default-allow when the record or field is missing
- the user's global direct-messages flag (DMs and message reactions)

Kinds this module does not know are allowed.
"""
from __future__ import annotations

from typing import Callable, Optional

from community_push.models.notification_setting import PREFERENCE_FIELDS, NotificationSetting
from community_push.services.push.kinds import PushNotificationKind as K
from community_push.services.push.types import UserProfile

Gate = Callable[[Optional[NotificationSetting], Optional[UserProfile]], bool]

ALWAYS_ALLOWED = frozenset(
    {
        K.SELECTED_AS_SPEAKER,
        K.POSTING_TIPS,
        K.SELECTED_AS_NEXT_SPEAKER,
        K.REMINDER_FOR_POST_CREATION,
        K.USER_REDEEMED_INVITE_LINK,
        K.LEAGUE_WEEKLY_RESULTS,
    }
)

# kind -> preference field consulted. Poll votes count as comments.
PREFERENCE_FIELD_BY_KIND: dict[K, str] = {
    K.TAGGED_IN_COMMENT: "tagged_in_comment",
    K.TAGGED_IN_POST: "tagged_in_post",
    K.ALL_COMMENTS: "all_comments",
    K.POLL_VOTE: "all_comments",
    K.POST_CREATED: "post_created",
    K.REACTION_ADDED: "reaction_notification",
    K.REACTION_ADDED_OTHERS: "reaction_notification",
    K.COMMUNITY_ANNOUNCEMENT: "community_announcements",
}

DIRECT_MESSAGE_KINDS = frozenset({K.DIRECT_MESSAGE, K.MESSAGE_REACTION_ADDED})


def default_preference_values() -> dict[str, bool]:
    """Values of a freshly created preference record."""
    return {f: True for f in PREFERENCE_FIELDS}


def default_allow(kind: "K | str") -> bool:
    """Decision for kind when the user has no preference record. Independent of storage."""
    field = PREFERENCE_FIELD_BY_KIND.get(kind) if isinstance(kind, K) else None
    if field is None:
        return True
    return default_preference_values()[field]


def allow_always(preference: NotificationSetting | None, user: UserProfile | None) -> bool:
    return True


def preference_gate(field: str) -> Gate:
    """Gate reading one preference field; missing record or null field falls back to the default."""

    def gate(preference: NotificationSetting | None, user: UserProfile | None) -> bool:
        if preference is None:
            return default_preference_values()[field]
        value = getattr(preference, field, None)
        if value is None:
            return default_preference_values()[field]
        return bool(value)

    gate.__name__ = f"preference_gate_{field}"
    return gate


def direct_messages_gate(preference: NotificationSetting | None, user: UserProfile | None) -> bool:
    # Per-community preferences do not apply to DMs; the profile flag does.
    if user is None:
        return True
    return bool(user.direct_messages_notifications)


def gate_for(kind: "K | str") -> Gate:
    if not isinstance(kind, K):
        return allow_always
    if kind in ALWAYS_ALLOWED:
        return allow_always
    if kind in DIRECT_MESSAGE_KINDS:
        return direct_messages_gate
    field = PREFERENCE_FIELD_BY_KIND.get(kind)
    if field is not None:
        return preference_gate(field)
    return allow_always


def is_allowed(
    kind: "K | str",
    preference: NotificationSetting | None,
    user: UserProfile | None = None,
) -> bool:
    return gate_for(kind)(preference, user)


def needs_user_profile(kind: "K | str") -> bool:
    return kind in DIRECT_MESSAGE_KINDS


def needs_preference(kind: "K | str") -> bool:
    return isinstance(kind, K) and kind in PREFERENCE_FIELD_BY_KIND
