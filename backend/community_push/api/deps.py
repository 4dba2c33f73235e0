"""Shared route dependencies."""
import hmac

from fastapi import Header, HTTPException, Request

from community_push.config import settings
from community_push.services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def current_user_id(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    """Caller identity. Authentication happens upstream; the gateway forwards the user id."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return user_id


def require_internal_api_key(x_internal_api_key: str | None = Header(None, alias="X-Internal-API-Key")) -> None:
    """Service-to-service calls from the community platform carry the shared internal key."""
    if not settings.internal_api_key:
        raise HTTPException(status_code=503, detail="Internal API not configured (no INTERNAL_API_KEY set)")
    if not x_internal_api_key:
        raise HTTPException(status_code=401, detail="Missing X-Internal-API-Key header")
    if not hmac.compare_digest(settings.internal_api_key, x_internal_api_key):
        raise HTTPException(status_code=403, detail="Invalid internal API key")
