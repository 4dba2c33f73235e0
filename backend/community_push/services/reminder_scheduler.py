"""
Reminder scheduler: remind the current speaker of a community to post before their slot ends.

Each community is idle, near-term-armed or overflow-armed. adjust_timer cancels whatever is
armed for the community, then picks the largest tier (12h, 6h, 1h) that still fits in the
remaining slot time and arms a timer for remaining - tier. Delays above the single-timer
maximum arm an overflow timer for exactly the maximum, whose only effect is to call
adjust_timer again. Slots shorter than the smallest tier never get a reminder.

Timer handles live in this service, keyed by (community id, slot); the cancel-then-arm
sequence runs under a per-community asyncio lock.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from community_push.config import settings
from community_push.core.constants import (
    REMINDER_OVERFLOW_TIMER_PREFIX,
    REMINDER_TIERS,
    REMINDER_TIMER_PREFIX,
)
from community_push.services.email_notify import make_reminder_email_content, make_unsubscribe_link
from community_push.services.push.base import ContentDirectory, EmailSender, LeagueDirectory, MembershipSource
from community_push.services.push.delivery import DeliveryEngine
from community_push.services.push.kinds import PushNotificationKind
from community_push.services.push.types import SpeakerSlot, UserProfile
from community_push.services.timers import TimerBackend, TimerHandle

logger = logging.getLogger(__name__)

NEAR_TERM = "near-term"
OVERFLOW = "overflow"

IDLE = "idle"
NEAR_TERM_ARMED = "near-term-armed"
OVERFLOW_ARMED = "overflow-armed"


@dataclass(frozen=True)
class ReminderPlan:
    """Outcome of adjust_timer. delay is None when nothing was due to be armed."""

    state: str
    delay: timedelta | None = None
    tier: timedelta | None = None
    armed: bool = False


def select_tier(remaining: timedelta, below: timedelta | None = None) -> timedelta | None:
    """Largest tier <= remaining; with below set, only tiers strictly shorter than below count."""
    for tier in REMINDER_TIERS:
        if below is not None and tier >= below:
            continue
        if tier <= remaining:
            return tier
    return None


def format_remaining(remaining: timedelta) -> str:
    """Human-readable time left in a slot: '12 hours', '1 hour', '45 minutes'."""
    minutes = max(0, int(round(remaining.total_seconds() / 60)))
    if minutes >= 60:
        hours = int(round(minutes / 60))
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    def __init__(
        self,
        *,
        membership: MembershipSource,
        content: ContentDirectory,
        engine: DeliveryEngine,
        email: EmailSender,
        leagues: LeagueDirectory,
        timers: TimerBackend,
        now: Callable[[], datetime] = _utcnow,
        max_delay: timedelta | None = None,
        disable_timers: bool | None = None,
    ) -> None:
        self.membership = membership
        self.content = content
        self.engine = engine
        self.email = email
        self.leagues = leagues
        self.timers = timers
        self.now = now
        self.max_delay = max_delay or timedelta(milliseconds=settings.reminder_max_timer_ms)
        self.disable_timers = settings.disable_timers if disable_timers is None else disable_timers
        self._handles: dict[tuple[str, str], TimerHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, community_id: str) -> asyncio.Lock:
        return self._locks.setdefault(community_id, asyncio.Lock())

    def armed(self, community_id: str) -> dict[str, TimerHandle]:
        """Live handles for community_id by slot (near-term / overflow). At most one entry."""
        return {slot: h for (cid, slot), h in self._handles.items() if cid == community_id}

    async def adjust_timer(self, community_id: str, *, below_tier: timedelta | None = None) -> ReminderPlan:
        async with self._lock(community_id):
            self._cancel_locked(community_id)

            speaker = await self.membership.current_speaker(community_id)
            if speaker is None:
                logger.debug("No speaker in chat room %s; reminder idle", community_id)
                return ReminderPlan(IDLE)

            remaining = speaker.ending_at - self.now()
            tier = select_tier(remaining, below=below_tier)
            if tier is None:
                logger.debug("Slot in chat room %s ends in %s; no reminder tier left", community_id, remaining)
                return ReminderPlan(IDLE)

            delay = remaining - tier
            if delay > self.max_delay:
                armed = self._arm(
                    community_id,
                    OVERFLOW,
                    self.max_delay,
                    lambda: self._on_overflow_fire(community_id),
                )
                return ReminderPlan(OVERFLOW_ARMED, self.max_delay, tier, armed)

            if await self.membership.has_live_post(community_id):
                logger.debug("Chat room %s already has a live post; reminder idle", community_id)
                return ReminderPlan(IDLE)

            armed = self._arm(
                community_id,
                NEAR_TERM,
                delay,
                lambda: self._on_near_term_fire(community_id, tier, speaker),
            )
            return ReminderPlan(NEAR_TERM_ARMED, delay, tier, armed)

    async def cancel(self, community_id: str) -> None:
        async with self._lock(community_id):
            self._cancel_locked(community_id)

    def shutdown(self) -> None:
        for key in list(self._handles):
            self.timers.cancel(self._handles.pop(key))

    def _cancel_locked(self, community_id: str) -> None:
        for slot in (NEAR_TERM, OVERFLOW):
            handle = self._handles.pop((community_id, slot), None)
            if handle is not None:
                self.timers.cancel(handle)

    def _arm(
        self,
        community_id: str,
        slot: str,
        delay: timedelta,
        on_fire: Callable[[], Awaitable[None]],
    ) -> bool:
        prefix = REMINDER_OVERFLOW_TIMER_PREFIX if slot == OVERFLOW else REMINDER_TIMER_PREFIX
        name = f"{prefix}__{community_id}"
        if self.disable_timers:
            logger.info("[DISABLE_TIMERS] ignoring request to schedule %s after %s", name, delay)
            return False

        handle: TimerHandle | None = None

        async def fire() -> None:
            # A newer timer may have replaced this one while it was firing
            if self._handles.get((community_id, slot)) is handle:
                del self._handles[(community_id, slot)]
            await on_fire()

        logger.info("Adding notification reminder %s after %s", name, delay)
        handle = self.timers.arm(name, delay, fire)
        self._handles[(community_id, slot)] = handle
        return True

    async def _on_overflow_fire(self, community_id: str) -> None:
        try:
            await self.adjust_timer(community_id)
        except Exception as e:
            logger.exception("Reminder re-evaluation failed for chat room %s: %s", community_id, e)

    async def _on_near_term_fire(self, community_id: str, tier: timedelta, armed_for: SpeakerSlot) -> None:
        try:
            if await self.membership.has_live_post(community_id):
                logger.info("Chat room %s has a live post; reminder not sent", community_id)
                return
            speaker = await self.membership.current_speaker(community_id)
            if speaker is None:
                logger.info("Chat room %s has no speaker; reminder not sent", community_id)
                return
            await self._send_reminders(community_id, speaker)
            # A different speaker or a moved slot starts again from the largest tier
            same_slot = speaker.user_id == armed_for.user_id and speaker.ending_at == armed_for.ending_at
            await self.adjust_timer(community_id, below_tier=tier if same_slot else None)
        except Exception as e:
            logger.exception("Reminder failed for chat room %s: %s", community_id, e)

    async def _send_reminders(self, community_id: str, speaker: SpeakerSlot) -> None:
        time = format_remaining(speaker.ending_at - self.now())
        await self.engine.enqueue_fan_out(
            [speaker.user_id],
            PushNotificationKind.REMINDER_FOR_POST_CREATION,
            {"chatRoomId": community_id, "time": time},
        )
        await self._send_reminder_email(community_id, speaker, time)

    async def _send_reminder_email(self, community_id: str, speaker: SpeakerSlot, time: str) -> None:
        try:
            user = speaker.user or await self.content.get_user(speaker.user_id) or UserProfile(id=speaker.user_id)
            if not (user.email and user.email_opt_in):
                logger.debug("Speaker %s has no email or opted out; reminder email skipped", user.id)
                return
            chat_room = await self.content.get_chat_room(community_id)
            include_tips = await self.leagues.has_active_league(community_id)
            content = make_reminder_email_content(
                time,
                user.display_name,
                chat_room.name if chat_room else "",
                include_tips,
                make_unsubscribe_link(user.id),
            )
            await self.email.send_reminder_email(user, content)
        except Exception as e:
            logger.exception("Reminder email failed for chat room %s: %s", community_id, e)
