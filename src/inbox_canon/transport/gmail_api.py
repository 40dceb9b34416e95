"""Gmail REST API client implementing the injected fetch capabilities."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.config import GmailApiSettings
from ..core.interfaces import AuthContext

LOGGER = logging.getLogger(__name__)


class GmailApiError(RuntimeError):
    """Raised when the Gmail API call fails or returns an unexpected shape."""


class GmailApiClient:
    """Async client for the message and attachment endpoints.

    Token acquisition is out of scope: ``auth`` is either a bearer token
    string or a mapping carrying ``access_token``.
    """

    def __init__(
        self,
        settings: GmailApiSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _messages_url(self, *parts: str) -> str:
        base = self._settings.base_url.rstrip("/")
        suffix = "/".join(parts)
        return f"{base}/gmail/v1/users/{self._settings.user_id}/messages/{suffix}"

    async def _get_json(
        self, url: str, auth: AuthContext, params: Mapping[str, str] | None = None
    ) -> dict[str, Any]:
        async with httpx.AsyncClient(
            transport=self._transport, timeout=self._settings.timeout_seconds
        ) as client:
            try:
                response = await client.get(url, headers=_auth_headers(auth), params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                LOGGER.warning(
                    "Gmail API request failed: %s %s", exc.response.status_code, url
                )
                raise GmailApiError(
                    f"Gmail API returned {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:  # pragma: no cover - network dependent
                raise GmailApiError(f"Gmail API request failed: {exc}") from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise GmailApiError("Gmail API returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise GmailApiError("Gmail API returned an unexpected payload")
        return data

    async def fetch_message(self, message_id: str, auth: AuthContext = None) -> dict[str, Any]:
        """Return the full message resource (``format=full``)."""
        return await self._get_json(self._messages_url(message_id), auth, {"format": "full"})

    async def fetch_raw_message(
        self, message_id: str, auth: AuthContext = None
    ) -> dict[str, bytes]:
        """Return ``{"raw": bytes}`` for the RFC822 form of a message."""
        data = await self._get_json(self._messages_url(message_id), auth, {"format": "raw"})
        raw = data.get("raw")
        if not isinstance(raw, str) or not raw:
            raise GmailApiError(f"Message {message_id} has no raw content")
        try:
            decoded = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))
        except (binascii.Error, ValueError) as exc:
            raise GmailApiError(f"Message {message_id} raw content is not base64url") from exc
        LOGGER.debug("Fetched raw message %s (%d bytes)", message_id, len(decoded))
        return {"raw": decoded}

    async def fetch_attachment_content(
        self, message_id: str, attachment_id: str, auth: AuthContext = None
    ) -> str:
        """Return attachment content as standard (not url-safe) base64."""
        data = await self._get_json(
            self._messages_url(message_id, "attachments", attachment_id), auth
        )
        content = data.get("data")
        if not isinstance(content, str) or not content:
            raise GmailApiError(f"Attachment {attachment_id} returned no data")
        return base64url_to_base64(content)


def base64url_to_base64(value: str) -> str:
    converted = value.replace("-", "+").replace("_", "/")
    return converted + "=" * (-len(converted) % 4)


def _auth_headers(auth: AuthContext) -> dict[str, str]:
    token: Any = auth
    if isinstance(auth, Mapping):
        token = auth.get("access_token") or auth.get("token")
    if isinstance(token, str) and token:
        return {"Authorization": f"Bearer {token}"}
    return {}


__all__ = ["GmailApiClient", "GmailApiError", "base64url_to_base64"]
