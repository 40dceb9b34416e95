"""Recover attachments the cloud API's lightweight format left out."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import Any

from inbox_canon.core.interfaces import (
    AuthContext,
    RawMessageFetcher,
    RawMessageParser,
)
from inbox_canon.core.models import CanonicalMessage, MessageSource

from .standardizer import normalize_attachments

LOGGER = logging.getLogger(__name__)


class AttachmentReconciler:
    """Re-fetch and re-parse cloud API messages that report no attachments.

    Fetch and parse failures are soft: they are logged and the message is
    returned unchanged. Messages that already carry attachments, or that
    come from any other source, are never re-fetched.
    """

    def __init__(
        self,
        fetch_raw_message: RawMessageFetcher,
        parse_raw_message: RawMessageParser,
    ) -> None:
        self._fetch_raw_message = fetch_raw_message
        self._parse_raw_message = parse_raw_message

    @staticmethod
    def needs_reconciliation(message: CanonicalMessage, source: str | MessageSource) -> bool:
        return (
            MessageSource.coerce(source) is MessageSource.CLOUD_API
            and not message.has_attachments
        )

    async def reconcile(
        self,
        message: CanonicalMessage,
        source: str | MessageSource,
        auth: AuthContext = None,
    ) -> CanonicalMessage:
        """Merge attachments found in the raw message into ``message``."""
        if not self.needs_reconciliation(message, source):
            return message

        try:
            payload = await self._fetch_raw_message(message.message_id, auth)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Raw fetch failed for message %s: %s", message.message_id, exc)
            return message

        raw = extract_raw(payload)
        if raw is None:
            LOGGER.warning("Raw fetch for message %s returned no content", message.message_id)
            return message

        try:
            parsed = self._parse_raw_message(raw)
            if inspect.isawaitable(parsed):
                parsed = await parsed
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Raw parse failed for message %s: %s", message.message_id, exc)
            return message

        items = parsed.get("attachments") if isinstance(parsed, Mapping) else None
        attachments = normalize_attachments(items or [], message.message_id)
        if not attachments:
            LOGGER.debug("Message %s has no attachments after re-parse", message.message_id)
            return message

        for attachment in attachments:
            if not attachment.message_id:
                attachment.message_id = message.message_id
        message.replace_attachments(attachments)
        LOGGER.info(
            "Recovered %d attachment(s) for message %s",
            len(attachments),
            message.message_id,
        )
        return message


def extract_raw(payload: Any) -> bytes | str | None:
    """Pull the raw RFC822 content out of a fetch response."""
    if isinstance(payload, Mapping):
        payload = payload.get("raw")
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload) or None
    if isinstance(payload, str):
        return payload or None
    return None


__all__ = ["AttachmentReconciler", "extract_raw"]
