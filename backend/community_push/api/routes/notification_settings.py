"""Notification settings API: the caller's per-community notification toggles."""
import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from community_push.api.deps import current_user_id, get_services
from community_push.core.errors import PushServiceError, domain_error_to_http
from community_push.services.container import ServiceContainer

router = APIRouter()
logger = logging.getLogger(__name__)


class NotificationSettingsUpdate(BaseModel):
    """Partial update; omitted or null fields keep their current value."""

    model_config = ConfigDict(extra="forbid")

    tagged_in_post: bool | None = None
    tagged_in_comment: bool | None = None
    post_created: bool | None = None
    selected_as_speaker: bool | None = None
    selected_as_next_speaker: bool | None = None
    all_comments: bool | None = None
    show_in_viewed_by: bool | None = None
    reaction_notification: bool | None = None
    community_announcements: bool | None = None


@router.get("/communities/{community_id}/notification-settings")
async def get_notification_settings(
    community_id: str,
    user_id: str = Depends(current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    """Read the caller's settings for a community; created with defaults on first read."""
    try:
        preferences = await services.settings_service.get_user_community_preferences(user_id, community_id)
    except PushServiceError as e:
        raise domain_error_to_http(e) from e
    return preferences.to_dict()


@router.patch("/communities/{community_id}/notification-settings")
async def update_notification_settings(
    community_id: str,
    body: NotificationSettingsUpdate,
    user_id: str = Depends(current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    changes = body.model_dump(exclude_none=True)
    try:
        preferences = await services.settings_service.update_user_community_preferences(
            user_id, community_id, changes
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except PushServiceError as e:
        raise domain_error_to_http(e) from e
    logger.info("Updated notification settings for user %s in %s: %s", user_id, community_id, sorted(changes))
    return preferences.to_dict()


@router.get("/communities/{community_id}/notification-settings/graphs")
async def get_notification_settings_graphs(
    community_id: str,
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    user_id: str = Depends(current_user_id),
    services: ServiceContainer = Depends(get_services),
) -> list[dict[str, Any]]:
    """Per-day full-access count and opt-in totals over a date range."""
    try:
        return await services.settings_service.get_notification_settings_graphs_data(
            community_id, start_date, end_date
        )
    except PushServiceError as e:
        raise domain_error_to_http(e) from e
