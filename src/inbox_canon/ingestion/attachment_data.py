"""Decode attachment payloads for preview and download."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Literal

from inbox_canon.core.models import AttachmentRef

LOGGER = logging.getLogger(__name__)

ContentFormat = Literal["dataurl", "base64", "binary", "text", "unknown"]

_DATA_URL = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)
_BASE64_ALPHABET = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_WHITESPACE = re.compile(r"\s+")
_TEXT_ENCODINGS = ("utf8", "utf-8", "text", "7bit", "8bit", "quoted-printable")


class AttachmentDecodeError(ValueError):
    """Raised when attachment content requested for display cannot be decoded."""


@dataclass(slots=True, frozen=True)
class ContentInfo:
    """Result of inspecting an attachment payload."""

    format: ContentFormat
    size: int
    is_valid: bool
    mime_type: str | None = None


@dataclass(slots=True, frozen=True)
class DecodedAttachment:
    """Decoded payload plus the encodings a UI layer needs."""

    data: bytes
    base64: str
    data_url: str
    info: ContentInfo


def is_valid_base64(value: str) -> bool:
    cleaned = _WHITESPACE.sub("", value or "")
    if not cleaned or len(cleaned) % 4 or not _BASE64_ALPHABET.match(cleaned):
        return False
    try:
        base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def analyze(attachment: AttachmentRef) -> ContentInfo:
    """Classify the payload format of ``attachment`` without decoding it."""
    content = attachment.content
    if not content:
        return ContentInfo(format="unknown", size=0, is_valid=False)
    if isinstance(content, (bytes, bytearray)):
        return ContentInfo(format="binary", size=len(content), is_valid=True)
    if content.startswith("data:"):
        match = _DATA_URL.match(content)
        if match:
            return ContentInfo(
                format="dataurl",
                size=len(content),
                is_valid=is_valid_base64(match.group(2)),
                mime_type=match.group(1),
            )
        return ContentInfo(format="dataurl", size=len(content), is_valid=False)
    if is_valid_base64(content):
        return ContentInfo(format="base64", size=len(content), is_valid=True)
    return ContentInfo(format="text", size=len(content), is_valid=False)


def decode(attachment: AttachmentRef) -> DecodedAttachment:
    """Decode ``attachment`` content to bytes.

    Raises :class:`AttachmentDecodeError` for missing content, malformed data
    URLs and invalid base64, so callers show an error state instead of a
    corrupted preview. Plain text is accepted only when the attachment is
    not declared as base64.
    """
    info = analyze(attachment)
    content = attachment.content

    if not content:
        raise AttachmentDecodeError(f"Attachment {attachment.filename} has no content")
    if isinstance(content, (bytes, bytearray)):
        data = bytes(content)
    elif info.format == "dataurl":
        match = _DATA_URL.match(content)
        if match is None or not info.is_valid:
            raise AttachmentDecodeError(f"Invalid data URL for {attachment.filename}")
        data = _b64decode(match.group(2))
    elif info.format == "base64":
        data = _b64decode(content)
    elif attachment.encoding.lower() in _TEXT_ENCODINGS:
        data = content.encode("utf-8")
    else:
        raise AttachmentDecodeError(f"Invalid base64 content for {attachment.filename}")

    encoded = base64.b64encode(data).decode("ascii")
    mime_type = attachment.content_type or info.mime_type or "application/octet-stream"
    LOGGER.debug(
        "Decoded attachment %s (%s, %d bytes)", attachment.filename, info.format, len(data)
    )
    return DecodedAttachment(
        data=data,
        base64=encoded,
        data_url=f"data:{mime_type};base64,{encoded}",
        info=info,
    )


def to_data_url(attachment: AttachmentRef) -> str:
    return decode(attachment).data_url


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(_WHITESPACE.sub("", value), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AttachmentDecodeError(f"Invalid base64 content: {exc}") from exc


__all__ = [
    "AttachmentDecodeError",
    "ContentInfo",
    "DecodedAttachment",
    "analyze",
    "decode",
    "is_valid_base64",
    "to_data_url",
]
