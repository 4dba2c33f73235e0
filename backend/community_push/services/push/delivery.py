"""
Delivery engine: preference gate -> payload -> devices -> multicast -> token pruning -> history.

Producers call enqueue_fan_out (preferred; never fails the caller). The notification
worker drains the queue into deliver_to_users, which runs the single-user pipeline for
each recipient independently: one user's failure never aborts the others.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Sequence

from community_push.config import settings
from community_push.core.constants import INVALID_TOKEN_ERROR_CODES, JOB_SEND_NOTIFICATION
from community_push.core.errors import MissingAuditHistoryError
from community_push.services.push.base import (
    AuditHistory,
    ContentDirectory,
    DeliveryHistoryStore,
    DeviceRegistry,
    PreferenceStore,
    PushProvider,
    WorkQueue,
)
from community_push.services.push.gate import is_allowed, needs_preference, needs_user_profile
from community_push.services.push.jobs import DeliverNotificationJob, NotificationContext
from community_push.services.push.kinds import PushNotificationKind, parse_kind
from community_push.services.push.registry import get_handler
from community_push.services.push.types import (
    ChatRoomSummary,
    PayloadContext,
    ProviderResult,
    PushMessage,
    UserProfile,
)

logger = logging.getLogger(__name__)

ContextLike = NotificationContext | Mapping[str, Any] | None


def _as_context(context: ContextLike) -> NotificationContext:
    if context is None:
        return NotificationContext()
    if isinstance(context, NotificationContext):
        return context
    return NotificationContext.model_validate(dict(context))


def _kind_value(kind: "PushNotificationKind | str") -> str:
    return kind.value if isinstance(kind, PushNotificationKind) else str(kind)


def invalid_tokens(tokens: Sequence[str], results: Sequence[ProviderResult]) -> list[str]:
    """
    Tokens the provider rejected permanently. results[i] answers tokens[i]; if the provider
    response is not aligned with the request (length or token mismatch) nothing is returned,
    so a broken response can never null the wrong device.
    """
    if len(results) != len(tokens):
        logger.error(
            "Provider returned %s results for %s tokens; skipping token pruning",
            len(results),
            len(tokens),
        )
        return []
    rejected = []
    for token, result in zip(tokens, results):
        if result.token and result.token != token:
            logger.error("Provider results are not aligned with request tokens; skipping token pruning")
            return []
        if not result.success and result.error_code in INVALID_TOKEN_ERROR_CODES:
            rejected.append(token)
    return rejected


class DeliveryEngine:
    """Sends notifications to users' devices and reconciles invalid tokens."""

    def __init__(
        self,
        *,
        queue: WorkQueue,
        devices: DeviceRegistry,
        preferences: PreferenceStore,
        provider: PushProvider,
        history: DeliveryHistoryStore,
        content: ContentDirectory,
        audit: AuditHistory,
        max_in_flight: int | None = None,
    ) -> None:
        self.queue = queue
        self.devices = devices
        self.preferences = preferences
        self.provider = provider
        self.history = history
        self.content = content
        self.audit = audit
        self.max_in_flight = max(1, max_in_flight or settings.delivery_max_in_flight_users)

    # - Producers

    async def enqueue_fan_out(
        self,
        user_ids: Sequence[str],
        kind: "PushNotificationKind | str",
        context: ContextLike = None,
    ) -> None:
        """
        Preferred way to notify one or more users: append a job and return.
        Queue failures are logged, never raised, so the caller's transaction is unaffected.
        """
        user_ids = [u for u in user_ids if u]
        if not user_ids:
            logger.debug("No recipients for %s; nothing enqueued", _kind_value(kind))
            return
        job = DeliverNotificationJob(user_ids=user_ids, kind=_kind_value(kind), context=_as_context(context))
        logger.info("Enqueuing push notification of type %s for users: %s", job.kind, user_ids)
        try:
            await self.queue.add(JOB_SEND_NOTIFICATION, job.model_dump(by_alias=True, exclude_none=True))
        except Exception as e:
            logger.exception("Failed to enqueue %s notification for %s users: %s", job.kind, len(user_ids), e)

    # - Queue consumer

    async def deliver_to_users(
        self,
        user_ids: Sequence[str],
        kind: "PushNotificationKind | str",
        context: ContextLike = None,
    ) -> None:
        """
        Run the single-user pipeline for each user. Must only be called by the worker.
        Context entities are resolved once per job; at most max_in_flight users run at a time.
        """
        ctx = _as_context(context)
        parsed = parse_kind(kind)
        resolved: PayloadContext | None = None
        if parsed is not None and get_handler(parsed) is not None:
            try:
                resolved = await self._resolve_context(parsed, ctx)
            except MissingAuditHistoryError as e:
                logger.warning("Notification %s not sent to %s users: %s", _kind_value(kind), len(user_ids), e)
                return

        semaphore = asyncio.Semaphore(self.max_in_flight)

        async def deliver(user_id: str) -> None:
            async with semaphore:
                await self._deliver_isolated(user_id, kind, ctx, resolved)

        await asyncio.gather(*(deliver(user_id) for user_id in user_ids))

    async def send_to_user_now(
        self,
        user_id: str,
        kind: "PushNotificationKind | str",
        context: ContextLike = None,
    ) -> bool:
        """Deliver to a single user without going through the queue. Never raises."""
        return await self._deliver_isolated(user_id, kind, _as_context(context))

    async def _deliver_isolated(
        self,
        user_id: str,
        kind: "PushNotificationKind | str",
        ctx: NotificationContext,
        resolved: PayloadContext | None = None,
    ) -> bool:
        try:
            return await self.send_to_user(user_id, kind, ctx, resolved=resolved)
        except MissingAuditHistoryError as e:
            logger.warning("Notification %s not sent to user %s: %s", _kind_value(kind), user_id, e)
        except Exception as e:
            logger.exception("Notification %s failed for user %s: %s", _kind_value(kind), user_id, e)
        return False

    # - Single-user pipeline

    async def send_to_user(
        self,
        user_id: str,
        kind: "PushNotificationKind | str",
        context: ContextLike = None,
        *,
        resolved: PayloadContext | None = None,
    ) -> bool:
        """
        Send one notification to every active device of user_id.
        Returns True when a provider send was attempted (and history recorded), False on a
        soft no-op: denied by preference, unsupported kind, missing context, no devices.
        resolved carries entities already looked up for a whole fan-out job.
        """
        ctx = _as_context(context)
        parsed = parse_kind(kind)
        kind_value = _kind_value(kind)

        if not await self._is_allowed(user_id, parsed or kind_value, ctx):
            logger.info("Notification will not be sent to user %s, user opted out for %s", user_id, kind_value)
            return False

        handler = get_handler(parsed) if parsed else None
        if handler is None:
            logger.warning("Unsupported message type %s: failed to generate message payload", kind_value)
            return False

        payload_ctx = resolved if resolved is not None else await self._resolve_context(handler.kind, ctx)
        missing = handler.missing_context(payload_ctx)
        if missing:
            logger.warning(
                "Notification %s for user %s skipped: missing context %s",
                kind_value,
                user_id,
                ", ".join(missing),
            )
            return False
        message = handler.build(payload_ctx)

        devices = await self.devices.devices_for_user(user_id)
        tokens = [d.token for d in devices if d.active and d.token]
        if not tokens:
            logger.info("Notification not sent to user %s, no device found with a valid push token", user_id)
            return False

        await self._send_multicast(tokens, message)
        await self.history.append(user_id, kind_value, json.dumps(message.to_dict()))
        return True

    async def _is_allowed(self, user_id: str, kind: "PushNotificationKind | str", ctx: NotificationContext) -> bool:
        preference = None
        if ctx.chat_room_id and needs_preference(kind):
            preference = await self.preferences.get_preference(user_id, ctx.chat_room_id)
        user = None
        if needs_user_profile(kind):
            user = await self.content.get_user(user_id)
        return is_allowed(kind, preference, user)

    async def _send_multicast(self, tokens: list[str], message: PushMessage) -> list[ProviderResult]:
        """One provider call for all tokens; nulls permanently rejected tokens. Never retries."""
        try:
            results = await self.provider.send_multicast(tokens, message)
        except Exception as e:
            logger.warning("Push provider send failed for %s tokens: %s", len(tokens), e, exc_info=True)
            return []
        rejected = invalid_tokens(tokens, results)
        if rejected:
            logger.info("Nulling %s invalid device tokens", len(rejected))
            await self.devices.null_tokens(rejected)
        return results

    async def _resolve_context(self, kind: PushNotificationKind, ctx: NotificationContext) -> PayloadContext:
        resolved = PayloadContext(time=ctx.time, metadata=ctx.metadata)
        if ctx.chat_room_id:
            chat_room = await self.content.get_chat_room(ctx.chat_room_id)
            if chat_room is not None:
                resolved.chat_room = ChatRoomSummary.from_chat_room(chat_room)
        if ctx.user_id:
            resolved.user = await self.content.get_user(ctx.user_id)
        if ctx.post_id:
            resolved.post = await self.content.get_post(ctx.post_id)
        if ctx.comment_id:
            resolved.comment = await self.content.get_comment(ctx.comment_id)
        if ctx.reaction_id:
            resolved.reaction = await self.content.get_reaction(ctx.reaction_id)
        if ctx.message_id:
            resolved.message = await self.content.get_message(ctx.message_id)

        if kind is PushNotificationKind.SELECTED_AS_SPEAKER and resolved.user is None and ctx.chat_room_id:
            # No explicit actor: attribute the selection to the previous speaker
            records = await self.audit.find_previous_speaker(ctx.chat_room_id)
            if not records:
                raise MissingAuditHistoryError(f"no previous speaker recorded for chat room {ctx.chat_room_id}")
            previous_id = records[0].user_id
            resolved.user = await self.content.get_user(previous_id) or UserProfile(id=previous_id)
        return resolved
