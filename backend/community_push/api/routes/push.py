"""Push registration: device tokens for the caller's phones and browsers."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from community_push.api.deps import current_user_id, get_services
from community_push.services.container import ServiceContainer

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=512, description="FCM registration token")
    platform: str = Field(default="ios", pattern="^(ios|android|web)$")


class DeregisterPushBody(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=512)


@router.post("/push/register")
async def register_push_token(
    body: RegisterPushBody,
    user_id: str = Depends(current_user_id),
    services: ServiceContainer = Depends(get_services),
):
    """
    Register a device for push notifications. Idempotent: the same token is upserted.
    The device is then subscribed to the topics of every community the user follows.
    """
    created = await services.devices.register(user_id, body.device_token, body.platform)
    try:
        await services.topics.sync_topic_for_user(user_id)
    except Exception as e:
        logger.warning("Topic sync after registration failed for user %s: %s", user_id, e, exc_info=True)
    return {"ok": True, "message": "Token registered" if created else "Token already registered"}


@router.post("/push/deregister")
async def deregister_push_token(
    body: DeregisterPushBody,
    user_id: str = Depends(current_user_id),
    services: ServiceContainer = Depends(get_services),
):
    """Forget a device (logout): null the token and unsubscribe it from community topics."""
    token = body.device_token.strip()
    removed = await services.devices.deregister(user_id, token)
    if not removed:
        return {"ok": True, "message": "Token not registered"}
    communities = await services.topics.purge_tokens_from_all_topics([token])
    logger.info("Deregistered device for user %s; purged from %s community topics", user_id, communities)
    return {"ok": True, "message": "Token removed"}
