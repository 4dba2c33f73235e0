"""
Internal API for the community platform: reminder re-evaluation, notification triggers and
membership changes. Called service-to-service with the shared X-Internal-API-Key; there is no
end-user identity header.
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from community_push.api.deps import get_services, require_internal_api_key
from community_push.core.errors import PushServiceError, domain_error_to_http
from community_push.services.container import ServiceContainer
from community_push.services.push.topics import is_on_topic

router = APIRouter(prefix="/internal", dependencies=[Depends(require_internal_api_key)])
logger = logging.getLogger(__name__)


class NextSpeakerBody(BaseModel):
    creator_id: str = Field(..., min_length=1)
    next_speaker_id: str = Field(..., min_length=1)
    time: str = Field(..., min_length=1, description="Human-readable time until the slot, e.g. '6 hours'")


class ReactionAddedBody(BaseModel):
    comment_owner_id: str = Field(..., min_length=1)
    actor_id: str = Field(..., min_length=1)
    reaction_id: str = Field(..., min_length=1)
    comment_id: str = Field(..., min_length=1)


class PollVoteBody(BaseModel):
    voter_id: str = Field(..., min_length=1)


class MembershipChangeBody(BaseModel):
    user_id: str = Field(..., min_length=1)
    action: Literal["join", "update", "leave"]
    mic_level: str | None = Field(default=None, description="Participation level after the change")


@router.post("/communities/{community_id}/reminders/adjust")
async def adjust_reminder(
    community_id: str,
    services: ServiceContainer = Depends(get_services),
):
    """Speaker changed, slot moved or a post went live: re-evaluate the community's reminder."""
    plan = await services.reminders.adjust_timer(community_id)
    return {
        "state": plan.state,
        "delay_seconds": plan.delay.total_seconds() if plan.delay is not None else None,
        "tier_seconds": plan.tier.total_seconds() if plan.tier is not None else None,
        "armed": plan.armed,
    }


@router.post("/communities/{community_id}/next-speaker")
async def notify_next_speaker(
    community_id: str,
    body: NextSpeakerBody,
    services: ServiceContainer = Depends(get_services),
):
    sent = await services.triggers.notify_selected_as_next_speaker(
        body.creator_id, body.next_speaker_id, body.time, community_id
    )
    return {"ok": True, "sent": sent}


@router.post("/communities/{community_id}/reactions")
async def notify_reaction(
    community_id: str,
    body: ReactionAddedBody,
    services: ServiceContainer = Depends(get_services),
):
    await services.triggers.notify_reaction_added(
        body.comment_owner_id, body.actor_id, community_id, body.reaction_id, body.comment_id
    )
    return {"ok": True}


@router.post("/communities/{community_id}/polls/{poll_id}/votes")
async def notify_poll_vote(
    community_id: str,
    poll_id: str,
    body: PollVoteBody,
    services: ServiceContainer = Depends(get_services),
):
    """404 for an unknown community; 403 when the poll is not live or the voter may not vote."""
    try:
        recipients = await services.triggers.notify_poll_vote(poll_id, community_id, body.voter_id)
    except PushServiceError as e:
        raise domain_error_to_http(e) from e
    return {"ok": True, "recipients": recipients}


@router.post("/communities/{community_id}/members")
async def membership_changed(
    community_id: str,
    body: MembershipChangeBody,
    services: ServiceContainer = Depends(get_services),
):
    """
    Join also creates default notification settings. The topic change follows the new mic
    level: on-topic levels queue a subscribe, anything else (or leaving) an unsubscribe.
    """
    if body.action == "join":
        await services.settings_service.create_if_not_present(body.user_id, community_id)
    if body.action != "leave" and is_on_topic(body.mic_level):
        await services.topics.enqueue_subscribe(body.user_id, community_id)
    else:
        await services.topics.enqueue_unsubscribe(body.user_id, community_id)
    logger.info("Membership %s for user %s in %s", body.action, body.user_id, community_id)
    return {"ok": True}
