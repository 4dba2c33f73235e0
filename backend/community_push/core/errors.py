"""
Centralized error types and HTTP mapping.

Domain code raises the typed errors below; routes convert them with domain_error_to_http
so new error types only need a rule here.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException


class PushServiceError(Exception):
    """Base class for errors raised by this service."""


class NotFoundError(PushServiceError):
    """The triggering entity does not exist."""


class ForbiddenError(PushServiceError):
    """The caller is not allowed to perform the operation."""


class MissingAuditHistoryError(PushServiceError):
    """No previous speaker recorded for a community (selected-as-speaker fallback)."""


class ProviderError(PushServiceError):
    """Push provider (FCM) transport or authentication failure."""


class CommunityApiError(PushServiceError):
    """Community API request failed or returned an unexpected status."""


# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_NOT_FOUND = 404
STATUS_FORBIDDEN = 403
STATUS_BAD_GATEWAY = 502
STATUS_INTERNAL_ERROR = 500


# List of (predicate, status_code, default detail). First match wins.
DOMAIN_ERROR_RULES: list[tuple[Callable[[Exception], bool], int, str]] = [
    (lambda e: isinstance(e, NotFoundError), STATUS_NOT_FOUND, "Not found"),
    (lambda e: isinstance(e, ForbiddenError), STATUS_FORBIDDEN, "Forbidden"),
    (lambda e: isinstance(e, ProviderError), STATUS_BAD_GATEWAY, "Push provider unavailable"),
    (lambda e: isinstance(e, CommunityApiError), STATUS_BAD_GATEWAY, "Community API unavailable"),
]


def domain_error_to_http(exc: Exception) -> HTTPException:
    """
    Map a domain exception into an HTTPException.
    Uses DOMAIN_ERROR_RULES; the exception message wins over the default detail when present.
    Unknown exceptions become 500 with the exception message.
    """
    msg = str(exc)
    for predicate, status_code, detail in DOMAIN_ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=msg or detail)
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=msg)
