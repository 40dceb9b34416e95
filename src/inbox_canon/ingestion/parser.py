"""Utilities for parsing raw RFC822 messages into source records."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from collections.abc import Iterable
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime
from typing import Any

from inbox_canon.core.datetime_utils import serialize_datetime

LOGGER = logging.getLogger(__name__)

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")
_BASE64URL_MIN_LENGTH = 100


class RawMessageParseError(ValueError):
    """Raised when raw message content cannot be decoded or parsed."""


class EmailParser:
    """Convert raw RFC822 payloads into source records.

    The returned mapping uses the field names the standardizer understands
    (``messageId``, ``from``, ``html``, ``text``, ``attachments`` ...), so it
    can be fed straight into :func:`inbox_canon.ingestion.standardizer.standardize`.
    """

    def __init__(self) -> None:
        """Prepare internal parser instance."""
        self._parser = BytesParser(policy=policy.default)

    def __call__(self, raw: bytes | str) -> dict[str, Any]:
        return self.parse(raw)

    def parse(self, raw: bytes | str) -> dict[str, Any]:
        """Parse raw RFC822 bytes, text, or base64url text."""
        payload = _coerce_payload(raw)
        try:
            message = self._parser.parsebytes(payload)
        except Exception as exc:  # pylint: disable=broad-except
            raise RawMessageParseError(f"Unable to parse raw message: {exc}") from exc

        body_text, body_html = _extract_bodies(message)
        attachments = list(_collect_attachments(message))
        LOGGER.debug(
            "Parsed raw message %s with %d attachment(s)",
            message.get("Message-ID"),
            len(attachments),
        )

        return {
            "messageId": _header(message, "Message-ID"),
            "threadId": _resolve_thread_id(message),
            "from": _first_address(message.get_all("From", [])),
            "to": _address_list(message.get_all("To", [])),
            "cc": _address_list(message.get_all("Cc", [])),
            "bcc": _address_list(message.get_all("Bcc", [])),
            "subject": _header(message, "Subject"),
            "date": _try_parse_date(message.get("Date")),
            "html": body_html or "",
            "text": body_text or "",
            "attachments": attachments,
            "headers": {key: str(value) for key, value in message.items()},
            "inReplyTo": _header(message, "In-Reply-To"),
            "references": _header(message, "References"),
        }


def decode_base64url(value: str) -> bytes:
    """Decode base64url text, restoring any stripped padding."""
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise RawMessageParseError(f"Invalid base64url content: {exc}") from exc


def _coerce_payload(raw: bytes | str) -> bytes:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if not isinstance(raw, str):
        raise RawMessageParseError(f"Unsupported raw message type: {type(raw).__name__}")
    stripped = raw.strip()
    if len(stripped) > _BASE64URL_MIN_LENGTH and _BASE64URL.match(stripped):
        try:
            return decode_base64url(stripped)
        except RawMessageParseError:
            LOGGER.debug("Raw message looked like base64url but did not decode")
    return raw.encode("utf-8", errors="replace")


def _header(message: EmailMessage, name: str) -> str:
    value = message.get(name)
    return str(value) if value is not None else ""


def _address_list(headers: Iterable[str]) -> list[dict[str, str]]:
    results: list[dict[str, str]] = []
    for name, email_address in getaddresses([str(header) for header in headers]):
        if email_address:
            results.append({"address": email_address, "name": name})
    return results


def _first_address(headers: Iterable[str]) -> dict[str, str] | str:
    addresses = _address_list(headers)
    return addresses[0] if addresses else ""


def _resolve_thread_id(message: EmailMessage) -> str | None:
    for header in (
        "Thread-Index",
        "Thread-Id",
        "References",
        "In-Reply-To",
        "Message-ID",
    ):
        value = message.get(header)
        if value and str(value).split():
            return str(value).split()[0]
    return None


def _collapse_chunks(chunks: Iterable[str], separator: str) -> str | None:
    filtered_chunks = [chunk for chunk in chunks if chunk]
    if not filtered_chunks:
        return None
    return separator.join(filtered_chunks)


def _extract_bodies(message: EmailMessage) -> tuple[str | None, str | None]:
    plain_chunks: list[str] = []
    html_chunks: list[str] = []

    for part in message.walk():
        if part.is_multipart():
            continue
        if part.get_content_disposition() == "attachment":
            continue
        content_type = part.get_content_type()
        if content_type not in ("text/plain", "text/html"):
            continue
        try:
            content_obj = part.get_content()
        except LookupError:
            continue
        if not isinstance(content_obj, str):
            continue
        content = content_obj.strip()
        if content_type == "text/plain":
            plain_chunks.append(content)
        else:
            html_chunks.append(content)

    text = _collapse_chunks(plain_chunks, "\n\n")
    html = _collapse_chunks(html_chunks, "\n")
    return text, html


def _collect_attachments(message: EmailMessage) -> Iterable[dict[str, Any]]:
    for part in message.iter_attachments():
        payload = part.get_payload(decode=True) or b""
        content_id = part.get("Content-ID")
        yield {
            "filename": part.get_filename(),
            "contentType": part.get_content_type(),
            "size": len(payload),
            "contentId": str(content_id) if content_id else None,
            "contentDisposition": part.get_content_disposition(),
            "isInline": part.get_content_disposition() == "inline",
            "content": base64.b64encode(payload).decode("ascii") if payload else None,
        }


def _try_parse_date(header_value: str | None) -> str:
    if header_value is None:
        return ""
    try:
        return serialize_datetime(parsedate_to_datetime(str(header_value)))
    except (TypeError, ValueError):
        return ""


__all__ = ["EmailParser", "RawMessageParseError", "decode_base64url"]
