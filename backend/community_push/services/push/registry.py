"""Registry of notification handlers: kind -> {gate, build, requires}. Add new kinds here."""
import logging
from dataclasses import dataclass
from typing import Callable

from community_push.services.push import payloads
from community_push.services.push.gate import Gate, gate_for
from community_push.services.push.kinds import PushNotificationKind as K
from community_push.services.push.types import PayloadContext, PushMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationHandler:
    kind: K
    gate: Gate
    build: Callable[[PayloadContext], PushMessage]
    # PayloadContext attributes that must be non-null before build runs
    requires: tuple[str, ...] = ()

    def missing_context(self, ctx: PayloadContext) -> list[str]:
        return [name for name in self.requires if getattr(ctx, name) is None]


_handlers: dict[K, NotificationHandler] = {}


def register(kind: K, build: Callable[[PayloadContext], PushMessage], requires: tuple[str, ...] = ()) -> None:
    _handlers[kind] = NotificationHandler(kind=kind, gate=gate_for(kind), build=build, requires=requires)


def get_handler(kind: "K | str") -> NotificationHandler | None:
    """Handler for kind, or None when the kind is unsupported."""
    return _handlers.get(kind)  # type: ignore[arg-type]


def list_kinds() -> list[K]:
    return list(_handlers.keys())


def missing_kinds() -> set[K]:
    """Enum members without a handler (should be empty)."""
    return set(K) - set(_handlers)


def _init_registry() -> None:
    register(K.SELECTED_AS_SPEAKER, payloads.build_selected_as_speaker, ("chat_room",))
    register(K.POSTING_TIPS, payloads.build_posting_tips, ("chat_room",))
    register(K.SELECTED_AS_NEXT_SPEAKER, payloads.build_selected_as_next_speaker, ("chat_room", "user"))
    register(K.TAGGED_IN_COMMENT, payloads.build_tagged_in_comment, ("chat_room", "comment"))
    register(K.TAGGED_IN_POST, payloads.build_tagged_in_post, ("chat_room", "post"))
    register(K.REMINDER_FOR_POST_CREATION, payloads.build_reminder, ("chat_room",))
    register(K.USER_REDEEMED_INVITE_LINK, payloads.build_user_redeemed_invite_link, ("chat_room", "user"))
    register(K.REACTION_ADDED, payloads.build_reaction_added, ("chat_room", "user", "reaction"))
    register(
        K.REACTION_ADDED_OTHERS,
        payloads.build_reaction_added_others,
        ("chat_room", "user", "reaction", "comment"),
    )
    register(K.POST_CREATED, payloads.build_post_created, ("chat_room", "post"))
    register(K.ALL_COMMENTS, payloads.build_comment_created, ("chat_room", "comment"))
    register(K.POLL_VOTE, payloads.build_poll_vote, ("chat_room", "user", "post"))
    register(K.COMMUNITY_ANNOUNCEMENT, payloads.build_community_announcement, ("chat_room", "message"))
    register(K.DIRECT_MESSAGE, payloads.build_direct_message, ("message",))
    register(K.MESSAGE_REACTION_ADDED, payloads.build_message_reaction_added, ("user", "message"))
    register(K.LEAGUE_WEEKLY_RESULTS, payloads.build_league_weekly_results, ("chat_room",))

    unhandled = missing_kinds()
    if unhandled:
        logger.warning("Notification kinds without a handler: %s", sorted(k.value for k in unhandled))


# Register built-in handlers on first import
_init_registry()
