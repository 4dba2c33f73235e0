"""
Send push notifications and manage topics via Firebase Cloud Messaging (HTTP v1).

Requires FCM_PROJECT_ID (or project_id in the service account) and FCM_SERVICE_ACCOUNT_PATH
or FCM_SERVICE_ACCOUNT_BASE64 in env. If not configured, sends report every token as failed
with a non-invalidating code and topic calls no-op (log and return).
"""
from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from pathlib import Path
from typing import Any, Sequence

import httpx
import jwt

from community_push.config import settings
from community_push.core.errors import ProviderError
from community_push.services.push.types import ProviderResult, PushMessage

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
IID_BATCH_ADD_URL = "https://iid.googleapis.com/iid/v1:batchAdd"
IID_BATCH_REMOVE_URL = "https://iid.googleapis.com/iid/v1:batchRemove"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
FCM_SCOPES = "https://www.googleapis.com/auth/firebase.messaging https://www.googleapis.com/auth/cloud-platform"

# Instance ID API accepts at most 1000 tokens per batch call
TOPIC_BATCH_SIZE = 1000

# OAuth token cache refresh margin; Google issues 1 hour tokens
_TOKEN_REFRESH_MARGIN_SECONDS = 5 * 60

# FCM v1 errorCode -> error code reported on ProviderResult
FCM_ERROR_CODES = {
    "UNREGISTERED": "messaging/registration-token-not-registered",
    "INVALID_ARGUMENT": "messaging/invalid-argument",
    "SENDER_ID_MISMATCH": "messaging/mismatched-credential",
    "QUOTA_EXCEEDED": "messaging/message-rate-exceeded",
    "UNAVAILABLE": "messaging/server-unavailable",
    "INTERNAL": "messaging/internal-error",
    "THIRD_PARTY_AUTH_ERROR": "messaging/third-party-auth-error",
}
UNKNOWN_ERROR_CODE = "messaging/unknown-error"
NOT_CONFIGURED_CODE = "messaging/not-configured"


def _load_service_account() -> dict[str, Any] | None:
    """Load service account JSON from FCM_SERVICE_ACCOUNT_BASE64 or FCM_SERVICE_ACCOUNT_PATH."""
    if settings.fcm_service_account_base64:
        try:
            return json.loads(base64.b64decode(settings.fcm_service_account_base64).decode("utf-8"))
        except Exception as e:
            logger.warning("FCM_SERVICE_ACCOUNT_BASE64 decode failed: %s", e)
            return None
    path = settings.fcm_service_account_path
    if path and Path(path).exists():
        try:
            return json.loads(Path(path).read_text(encoding="utf-8"))
        except Exception as e:
            logger.warning("FCM_SERVICE_ACCOUNT_PATH read failed: %s", e)
            return None
    return None


def error_code_from_response(resp: httpx.Response) -> str:
    """Map an FCM v1 error response to a provider error code."""
    try:
        error = resp.json().get("error") or {}
    except ValueError:
        return UNKNOWN_ERROR_CODE
    for detail in error.get("details") or []:
        code = detail.get("errorCode")
        if code:
            return FCM_ERROR_CODES.get(code, UNKNOWN_ERROR_CODE)
    return FCM_ERROR_CODES.get(error.get("status") or "", UNKNOWN_ERROR_CODE)


def build_fcm_message(token: str, message: PushMessage) -> dict[str, Any]:
    notification: dict[str, Any] = {"title": message.title, "body": message.body}
    if message.image:
        notification["image"] = message.image
    return {
        "message": {
            "token": token,
            "notification": notification,
            "data": {k: str(v) for k, v in message.data.items()},
            "apns": {"payload": {"aps": {"sound": "default"}}},
            "android": {"priority": "high"},
        }
    }


class FcmPushProvider:
    """PushProvider backed by FCM HTTP v1 and the Instance ID topic API."""

    def __init__(
        self,
        service_account: dict[str, Any] | None = None,
        *,
        project_id: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._service_account = service_account if service_account is not None else _load_service_account()
        self._project_id = (
            project_id
            or settings.fcm_project_id
            or (self._service_account or {}).get("project_id", "")
        )
        self._timeout = timeout or settings.fcm_timeout_seconds
        self._transport = transport
        self._token_cache: tuple[str, float] | None = None
        self._token_lock = asyncio.Lock()

    def is_configured(self) -> bool:
        sa = self._service_account or {}
        return bool(self._project_id and sa.get("client_email") and sa.get("private_key"))

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        """OAuth2 access token from a signed service-account JWT, cached until near expiry."""
        async with self._token_lock:
            now = time.time()
            if self._token_cache and self._token_cache[1] > now:
                return self._token_cache[0]
            sa = self._service_account or {}
            token_uri = sa.get("token_uri") or GOOGLE_TOKEN_URL
            assertion = jwt.encode(
                {
                    "iss": sa["client_email"],
                    "scope": FCM_SCOPES,
                    "aud": token_uri,
                    "iat": int(now),
                    "exp": int(now) + 3600,
                },
                sa["private_key"],
                algorithm="RS256",
            )
            try:
                resp = await client.post(
                    token_uri,
                    data={"grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer", "assertion": assertion},
                )
            except httpx.HTTPError as e:
                raise ProviderError(f"FCM auth request failed: {e}") from e
            if resp.status_code != 200:
                raise ProviderError(f"FCM auth returned {resp.status_code}: {resp.text[:200]}")
            body = resp.json()
            access_token = body["access_token"]
            expires_in = int(body.get("expires_in", 3600))
            self._token_cache = (access_token, now + expires_in - _TOKEN_REFRESH_MARGIN_SECONDS)
            return access_token

    async def send_multicast(self, tokens: Sequence[str], message: PushMessage) -> list[ProviderResult]:
        """
        Send message to every token. FCM v1 has no multicast endpoint, so one request per
        token runs concurrently; results keep the order of tokens.
        """
        tokens = list(tokens)
        if not tokens:
            return []
        if not self.is_configured():
            logger.debug("FCM not configured (project/service account); skipping push")
            return [ProviderResult(token=t, success=False, error_code=NOT_CONFIGURED_CODE) for t in tokens]
        async with self._client() as client:
            access_token = await self._access_token(client)
            headers = {"Authorization": f"Bearer {access_token}"}
            url = FCM_SEND_URL.format(project_id=self._project_id)
            return list(
                await asyncio.gather(*(self._send_one(client, url, headers, t, message) for t in tokens))
            )

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str],
        token: str,
        message: PushMessage,
    ) -> ProviderResult:
        try:
            resp = await client.post(url, json=build_fcm_message(token, message), headers=headers)
        except httpx.HTTPError as e:
            logger.warning("FCM request failed for token %s...: %s", token[:20], e)
            return ProviderResult(token=token, success=False, error_code=UNKNOWN_ERROR_CODE)
        if resp.status_code == 200:
            return ProviderResult(token=token, success=True)
        code = error_code_from_response(resp)
        logger.debug("FCM returned %s (%s) for token %s...", resp.status_code, code, token[:20])
        return ProviderResult(token=token, success=False, error_code=code)

    async def subscribe_topic(self, tokens: Sequence[str], topic: str) -> None:
        await self._topic_batch(IID_BATCH_ADD_URL, tokens, topic)

    async def unsubscribe_topic(self, tokens: Sequence[str], topic: str) -> None:
        await self._topic_batch(IID_BATCH_REMOVE_URL, tokens, topic)

    async def _topic_batch(self, url: str, tokens: Sequence[str], topic: str) -> None:
        tokens = [t for t in tokens if t]
        if not tokens:
            return
        if not self.is_configured():
            logger.debug("FCM not configured; skipping topic update for %s", topic)
            return
        async with self._client() as client:
            access_token = await self._access_token(client)
            headers = {"Authorization": f"Bearer {access_token}", "access_token_auth": "true"}
            for start in range(0, len(tokens), TOPIC_BATCH_SIZE):
                chunk = tokens[start : start + TOPIC_BATCH_SIZE]
                try:
                    resp = await client.post(
                        url,
                        json={"to": f"/topics/{topic}", "registration_tokens": chunk},
                        headers=headers,
                    )
                except httpx.HTTPError as e:
                    raise ProviderError(f"topic request failed for {topic}: {e}") from e
                if not resp.is_success:
                    raise ProviderError(f"topic request for {topic} returned {resp.status_code}: {resp.text[:200]}")
