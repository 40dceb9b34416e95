"""Flatten cloud mail API message resources into source records."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Mapping
from typing import Any

LOGGER = logging.getLogger(__name__)

_ADDRESS_HEADERS = {"from": "from", "to": "to", "cc": "cc", "bcc": "bcc"}


def is_gmail_message(record: Mapping[str, Any]) -> bool:
    """Return ``True`` for a full API message resource with a MIME payload."""
    return isinstance(record.get("payload"), Mapping)


def decode_body_data(data: str | None) -> str:
    """Decode a base64url ``body.data`` field to text."""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as exc:
        LOGGER.warning("Undecodable message body part: %s", exc)
        return ""


def gmail_message_to_record(message: Mapping[str, Any]) -> dict[str, Any]:
    """Convert an API message resource into a flat record.

    Header values become ``from``/``to``/``subject``/``date`` fields, the
    MIME tree is walked for ``text/html`` and ``text/plain`` bodies, and
    every part with a filename becomes an attachment entry owned by the
    message.
    """
    payload = message.get("payload") or {}
    message_id = message.get("id")
    headers = _header_map(payload.get("headers"))

    html_chunks: list[str] = []
    text_chunks: list[str] = []
    attachments: list[dict[str, Any]] = []
    _walk_parts(payload, html_chunks, text_chunks, attachments, message_id)

    html = "\n".join(chunk for chunk in html_chunks if chunk)
    text = "\n\n".join(chunk for chunk in text_chunks if chunk)
    label_ids = list(message.get("labelIds") or [])

    record: dict[str, Any] = {
        "id": message_id,
        "messageId": message_id,
        "threadId": message.get("threadId"),
        "subject": headers.get("subject", ""),
        "date": headers.get("date") or message.get("internalDate"),
        "internalDate": message.get("internalDate"),
        "html": html,
        "text": text,
        "isHtml": len(html) > len(text),
        "snippet": message.get("snippet", ""),
        "labelIds": label_ids,
        "unread": "UNREAD" in label_ids,
        "attachments": attachments,
        "headers": {
            str(item.get("name")): str(item.get("value", ""))
            for item in payload.get("headers") or []
            if isinstance(item, Mapping) and item.get("name")
        },
    }
    for header, field_name in _ADDRESS_HEADERS.items():
        if headers.get(header):
            record[field_name] = headers[header]
    return record


def _header_map(headers: Any) -> dict[str, str]:
    result: dict[str, str] = {}
    for item in headers or []:
        if isinstance(item, Mapping) and item.get("name"):
            result.setdefault(str(item["name"]).lower(), str(item.get("value", "")))
    return result


def _walk_parts(
    part: Mapping[str, Any],
    html_chunks: list[str],
    text_chunks: list[str],
    attachments: list[dict[str, Any]],
    message_id: str | None,
) -> None:
    mime_type = str(part.get("mimeType") or "").lower()
    body = part.get("body") or {}
    filename = part.get("filename")

    if filename:
        part_headers = _header_map(part.get("headers"))
        content_id = part_headers.get("content-id")
        disposition = part_headers.get("content-disposition", "")
        attachments.append(
            {
                "filename": filename,
                "mimeType": mime_type or None,
                "size": body.get("size", 0),
                "attachmentId": body.get("attachmentId"),
                "messageId": message_id,
                "data": _standard_base64(body.get("data")),
                "contentId": content_id,
                "isInline": bool(content_id) and not disposition.lower().startswith("attachment"),
            }
        )
    elif mime_type == "text/html":
        html_chunks.append(decode_body_data(body.get("data")))
    elif mime_type == "text/plain":
        text_chunks.append(decode_body_data(body.get("data")))

    for child in part.get("parts") or []:
        if isinstance(child, Mapping):
            _walk_parts(child, html_chunks, text_chunks, attachments, message_id)


def _standard_base64(data: str | None) -> str | None:
    if not data:
        return None
    converted = data.replace("-", "+").replace("_", "/")
    return converted + "=" * (-len(converted) % 4)


__all__ = ["decode_body_data", "gmail_message_to_record", "is_gmail_message"]
