"""Map arbitrarily shaped source records onto :class:`CanonicalMessage`."""

from __future__ import annotations

import hashlib
import itertools
import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from email.utils import getaddresses, parseaddr
from typing import Any, Literal

from inbox_canon.content.text import html_to_text
from inbox_canon.core.datetime_utils import (
    parse_source_date,
    serialize_datetime,
    to_epoch_millis,
)
from inbox_canon.core.models import (
    NO_CONTENT_PLACEHOLDER,
    Address,
    AttachmentRef,
    CanonicalMessage,
    MessageSource,
)

from .gmail_payload import gmail_message_to_record, is_gmail_message

LOGGER = logging.getLogger(__name__)

DEFAULT_SUBJECT = "(No Subject)"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
IdStrategy = Literal["time", "hash"]

_MAX_ADDRESS_DEPTH = 5


class MessageStandardizer:
    """Build canonical messages with defensive defaults for every field.

    ``id_strategy`` decides how records carrying neither ``id`` nor
    ``messageId`` are identified: ``"time"`` uses the ingestion clock (not
    stable across re-ingestion), ``"hash"`` derives a digest from the best
    unique headers so the same record always maps to the same id.
    """

    def __init__(
        self,
        *,
        id_strategy: IdStrategy = "time",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if id_strategy not in ("time", "hash"):
            raise ValueError(f"Unknown id strategy: {id_strategy}")
        self._id_strategy = id_strategy
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sequence = itertools.count(1)

    def standardize(
        self,
        raw: Mapping[str, Any] | None,
        source: str | MessageSource | None = MessageSource.LOCAL,
    ) -> CanonicalMessage:
        """Return a canonical message for ``raw``; never raises."""
        source_tag = MessageSource.coerce(source)
        record: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
        try:
            if is_gmail_message(record):
                record = gmail_message_to_record(record)
            return self._build(record, source_tag)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Falling back to minimal message after mapping failure: %s", exc)
            return self._minimal(record, source_tag)

    def _build(self, record: Mapping[str, Any], source: MessageSource) -> CanonicalMessage:
        message_id, canonical_id = self._resolve_ids(record)
        sent_at = self._resolve_date(record)
        body, body_html, body_text = resolve_body(record)

        return CanonicalMessage(
            id=canonical_id,
            message_id=message_id,
            sender=parse_address(record.get("from") or ""),
            to=parse_address_list(record.get("to")),
            cc=parse_address_list(record.get("cc")),
            bcc=parse_address_list(record.get("bcc")),
            subject=_as_text(record.get("subject")).strip() or DEFAULT_SUBJECT,
            date=serialize_datetime(sent_at),
            timestamp=to_epoch_millis(sent_at),
            body=body,
            body_html=body_html,
            body_text=body_text,
            source=source,
            attachments=normalize_attachments(record.get("attachments"), message_id),
            read=_resolve_read(record),
            thread_id=_optional_text(record.get("threadId")),
            conversation_id=_optional_text(record.get("conversationId")),
            snippet=_as_text(record.get("snippet")),
            headers=_normalize_headers(record.get("headers")),
            labels=tuple(str(label) for label in _labels(record)),
            folder=_as_text(record.get("folder")) or "INBOX",
        )

    def _minimal(self, record: Mapping[str, Any], source: MessageSource) -> CanonicalMessage:
        now = self._clock()
        message_id, canonical_id = self._resolve_ids(record)
        return CanonicalMessage(
            id=canonical_id,
            message_id=message_id,
            sender=Address(email=""),
            subject=DEFAULT_SUBJECT,
            date=serialize_datetime(now),
            timestamp=to_epoch_millis(now),
            body=NO_CONTENT_PLACEHOLDER,
            body_html="",
            body_text=NO_CONTENT_PLACEHOLDER,
            source=source,
        )

    def _resolve_ids(self, record: Mapping[str, Any]) -> tuple[str, str]:
        raw_id = _optional_text(record.get("id"))
        raw_message_id = _optional_text(record.get("messageId"))
        if raw_id or raw_message_id:
            return raw_message_id or raw_id, raw_id or raw_message_id
        synthetic = self._synthetic_id(record)
        LOGGER.debug("Assigned synthetic id %s (%s strategy)", synthetic, self._id_strategy)
        return synthetic, synthetic

    def _synthetic_id(self, record: Mapping[str, Any]) -> str:
        if self._id_strategy == "hash":
            return stable_message_id(record)
        millis = to_epoch_millis(self._clock())
        return f"{millis}-{next(self._sequence)}"

    def _resolve_date(self, record: Mapping[str, Any]) -> datetime:
        candidate = record.get("date") or record.get("internalDate")
        parsed = parse_source_date(candidate)
        if parsed is None:
            if candidate:
                LOGGER.warning("Invalid date %r; using ingestion time", candidate)
            return self._clock()
        return parsed


_DEFAULT_STANDARDIZER = MessageStandardizer()


def standardize(
    raw: Mapping[str, Any] | None,
    source: str | MessageSource | None = MessageSource.LOCAL,
) -> CanonicalMessage:
    """Standardize ``raw`` with the default time-based id strategy."""
    return _DEFAULT_STANDARDIZER.standardize(raw, source)


def stable_message_id(record: Mapping[str, Any]) -> str:
    """Digest of the most identifying fields of ``record``."""
    headers = _normalize_headers(record.get("headers"))
    header_id = next(
        (value for key, value in headers.items() if key.lower() == "message-id"), ""
    )
    body = _as_text(
        record.get("html") or record.get("bodyHtml") or record.get("text")
        or record.get("bodyText") or record.get("body")
    )
    material = "\n".join(
        (
            header_id,
            str(record.get("from") or ""),
            _as_text(record.get("subject")),
            str(record.get("date") or ""),
            body[:512],
        )
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:32]


def parse_address(value: Any, _depth: int = 0) -> Address:
    """Parse a string, mapping or wrapper shape into an :class:`Address`."""
    if isinstance(value, Address):
        return value
    if isinstance(value, str):
        name, email_address = parseaddr(value)
        if email_address:
            return Address(email=email_address, name=name or None)
        return Address(email=value.strip())
    if _depth < _MAX_ADDRESS_DEPTH:
        if isinstance(value, Mapping):
            address = value.get("address") or value.get("email")
            if address:
                return Address(email=str(address).strip(), name=_optional_text(value.get("name")))
            if value.get("text"):
                return parse_address(value["text"], _depth + 1)
            if value.get("value"):
                return parse_address(value["value"], _depth + 1)
        elif isinstance(value, (list, tuple)) and value:
            return parse_address(value[0], _depth + 1)
    return Address(email=str(value) if value is not None else "")


def parse_address_list(value: Any) -> list[Address]:
    """Parse a recipient field that may hold one or many addresses."""
    if not value:
        return []
    if isinstance(value, str):
        parsed = [
            Address(email=email_address, name=name or None)
            for name, email_address in getaddresses([value])
            if email_address
        ]
        return parsed or [parse_address(value)]
    if isinstance(value, Mapping) and isinstance(value.get("value"), (list, tuple)):
        return [parse_address(item) for item in value["value"]]
    if isinstance(value, (list, tuple)):
        return [parse_address(item) for item in value if item]
    return [parse_address(value)]


def resolve_body(record: Mapping[str, Any]) -> tuple[str, str, str]:
    """Return ``(body, body_html, body_text)`` by the fixed priority order."""
    body_html = _as_text(record.get("html") or record.get("bodyHtml"))
    body_text = _as_text(record.get("text") or record.get("bodyText"))
    generic = _as_text(record.get("body"))

    if body_html.strip():
        body = body_html
    elif body_text.strip():
        body = body_text
    elif generic.strip():
        body = generic
        if record.get("isHtml"):
            body_html = generic
        else:
            body_text = generic
    else:
        body = NO_CONTENT_PLACEHOLDER
        body_text = NO_CONTENT_PLACEHOLDER

    if not body_text.strip() and body_html.strip():
        body_text = html_to_text(body_html)
    return body, body_html, body_text


def normalize_attachments(items: Any, owner_message_id: str | None) -> list[AttachmentRef]:
    """Map source attachment shapes onto :class:`AttachmentRef` objects."""
    if not isinstance(items, Iterable) or isinstance(items, (str, bytes, Mapping)):
        return []
    normalized: list[AttachmentRef] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            LOGGER.debug("Skipping attachment entry of type %s", type(item).__name__)
            continue
        normalized.append(_normalize_attachment(item, index, owner_message_id))
    return normalized


def _normalize_attachment(
    item: Mapping[str, Any], index: int, owner_message_id: str | None
) -> AttachmentRef:
    attachment_id = _optional_text(item.get("attachmentId"))
    message_id = _optional_text(item.get("messageId"))
    if attachment_id and not message_id:
        message_id = owner_message_id

    content = item.get("content") or item.get("data") or item.get("body")
    if isinstance(content, str):
        content = strip_data_url_prefix(content)
    elif not isinstance(content, (bytes, bytearray)):
        content = None

    content_id = _optional_text(item.get("contentId") or item.get("cid"))
    if content_id:
        content_id = content_id.strip("<>")

    disposition = _as_text(item.get("contentDisposition")).lower()
    return AttachmentRef(
        filename=_as_text(item.get("filename") or item.get("name")) or f"attachment_{index + 1}",
        content_type=_as_text(item.get("contentType") or item.get("mimeType"))
        or DEFAULT_CONTENT_TYPE,
        size=_coerce_int(item.get("size") or item.get("length")),
        content=content,
        attachment_id=attachment_id,
        message_id=message_id,
        is_inline=bool(item.get("isInline") or item.get("inline") or item.get("related"))
        or disposition == "inline",
        content_id=content_id,
        encoding=_as_text(item.get("encoding")) or "base64",
    )


def strip_data_url_prefix(content: str) -> str:
    """Reduce ``data:<type>;base64,<payload>`` to ``<payload>``."""
    if content.startswith("data:"):
        marker = content.find("base64,")
        if marker != -1:
            return content[marker + len("base64,"):]
    return content


def _resolve_read(record: Mapping[str, Any]) -> bool:
    if record.get("unread") is not None:
        return not bool(record["unread"])
    if record.get("read") is not None:
        return bool(record["read"])
    labels = record.get("labelIds")
    if isinstance(labels, (list, tuple)):
        return "UNREAD" not in labels
    return False


def _labels(record: Mapping[str, Any]) -> Iterable[Any]:
    labels = record.get("labelIds") or record.get("labels") or ()
    if isinstance(labels, str):
        return (labels,)
    return labels if isinstance(labels, (list, tuple)) else ()


def _normalize_headers(headers: Any) -> dict[str, str]:
    if isinstance(headers, Mapping):
        return {str(key): str(value) for key, value in headers.items()}
    if isinstance(headers, (list, tuple)):
        return {
            str(item["name"]): str(item.get("value", ""))
            for item in headers
            if isinstance(item, Mapping) and "name" in item
        }
    return {}


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return ""


def _optional_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _coerce_int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


__all__ = [
    "DEFAULT_SUBJECT",
    "IdStrategy",
    "MessageStandardizer",
    "normalize_attachments",
    "parse_address",
    "parse_address_list",
    "resolve_body",
    "stable_message_id",
    "standardize",
    "strip_data_url_prefix",
]
