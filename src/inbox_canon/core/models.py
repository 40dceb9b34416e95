"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

NO_CONTENT_PLACEHOLDER = "[No content available]"


class MessageSource(StrEnum):
    """Where a canonical message was ingested from."""

    CLOUD_API = "cloud-api"
    MAILBOX_PROTOCOL = "mailbox-protocol"
    LOCAL = "local"
    IMPORT = "import"

    @classmethod
    def coerce(cls, value: str | MessageSource | None) -> MessageSource:
        """Map a free-form source tag onto a known source, defaulting to local."""
        if isinstance(value, MessageSource):
            return value
        if not value:
            return cls.LOCAL
        normalized = str(value).strip().lower()
        return _SOURCE_ALIASES.get(normalized, cls.LOCAL)


_SOURCE_ALIASES: dict[str, MessageSource] = {
    "cloud-api": MessageSource.CLOUD_API,
    "gmail": MessageSource.CLOUD_API,
    "gmail-api": MessageSource.CLOUD_API,
    "mailbox-protocol": MessageSource.MAILBOX_PROTOCOL,
    "imap": MessageSource.MAILBOX_PROTOCOL,
    "local": MessageSource.LOCAL,
    "import": MessageSource.IMPORT,
}


@dataclass(slots=True, frozen=True)
class Address:
    """A mailbox address with an optional display name."""

    email: str
    name: str | None = None

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} <{self.email}>"
        return self.email


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class AttachmentRef:
    """Metadata for one attachment; ``content`` may arrive later."""

    filename: str
    content_type: str
    size: int
    content: str | bytes | None = None
    attachment_id: str | None = None
    message_id: str | None = None
    is_inline: bool = False
    content_id: str | None = None
    encoding: str = "base64"

    @property
    def cache_key(self) -> tuple[str, str] | None:
        """Identity used for lazy fetching, when both ids are known."""
        if self.message_id and self.attachment_id:
            return (self.message_id, self.attachment_id)
        return None

    def to_dict(self) -> dict[str, Any]:
        """Return a camelCase view without the payload."""
        return {
            "filename": self.filename,
            "contentType": self.content_type,
            "size": self.size,
            "attachmentId": self.attachment_id,
            "messageId": self.message_id,
            "isInline": self.is_inline,
            "contentId": self.content_id,
            "hasContent": self.content is not None,
        }


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class CanonicalMessage:
    """Normalized message shared by every ingestion source."""

    id: str
    message_id: str
    sender: Address
    subject: str
    date: str
    timestamp: int
    body: str
    body_html: str
    body_text: str
    source: MessageSource
    to: list[Address] = field(default_factory=list)
    cc: list[Address] = field(default_factory=list)
    bcc: list[Address] = field(default_factory=list)
    attachments: list[AttachmentRef] = field(default_factory=list)
    read: bool = False
    thread_id: str | None = None
    conversation_id: str | None = None
    snippet: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    labels: tuple[str, ...] = ()
    folder: str = "INBOX"

    @property
    def html(self) -> str:
        """Renderer-facing mirror of :attr:`body_html`."""
        return self.body_html

    @property
    def text(self) -> str:
        """Renderer-facing mirror of :attr:`body_text`."""
        return self.body_text

    @property
    def has_attachments(self) -> bool:
        return len(self.attachments) > 0

    @property
    def thread_key(self) -> str:
        """Key used to fold this message into a conversation."""
        return self.thread_id or self.message_id

    def replace_attachments(self, attachments: list[AttachmentRef]) -> None:
        """Swap the attachment list wholesale."""
        self.attachments = list(attachments)

    def to_dict(self) -> dict[str, Any]:
        """Return a camelCase dictionary for JSON consumers."""
        return {
            "id": self.id,
            "messageId": self.message_id,
            "threadId": self.thread_id,
            "conversationId": self.conversation_id,
            "from": _address_dict(self.sender),
            "to": [_address_dict(item) for item in self.to],
            "cc": [_address_dict(item) for item in self.cc],
            "bcc": [_address_dict(item) for item in self.bcc],
            "subject": self.subject,
            "date": self.date,
            "timestamp": self.timestamp,
            "body": self.body,
            "bodyHtml": self.body_html,
            "bodyText": self.body_text,
            "html": self.html,
            "text": self.text,
            "snippet": self.snippet,
            "attachments": [item.to_dict() for item in self.attachments],
            "hasAttachments": self.has_attachments,
            "read": self.read,
            "labels": list(self.labels),
            "folder": self.folder,
            "source": self.source.value,
        }


def _address_dict(address: Address) -> dict[str, str | None]:
    return {"email": address.email, "name": address.name}


@dataclass(slots=True)
class Conversation:
    """Messages folded together under one thread key."""

    id: str
    subject: str
    participants: list[str] = field(default_factory=list)
    emails: list[CanonicalMessage] = field(default_factory=list)
    unread_count: int = 0
    has_attachments: bool = False

    def add(self, message: CanonicalMessage) -> None:
        """Append ``message`` and update the derived counters."""
        self.emails.append(message)
        if not message.read:
            self.unread_count += 1
        if message.has_attachments:
            self.has_attachments = True
        sender = message.sender.email
        if sender not in self.participants:
            self.participants.append(sender)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "participants": list(self.participants),
            "emailIds": [email.id for email in self.emails],
            "unreadCount": self.unread_count,
            "hasAttachments": self.has_attachments,
        }


@dataclass(slots=True)
class MessageChunk:
    """Raw mailbox payload paired with its UID."""

    uid: int
    raw: bytes


@dataclass(slots=True, frozen=True)
class ClassificationResult:
    """Verdict of the HTML-versus-text classifier."""

    is_html: bool
    confidence: float
    indicators: tuple[str, ...]


ContentType = Literal["html", "text"]


@dataclass(slots=True)
class TransformResult:
    """Renderable HTML plus a plain-text rendering of the same content."""

    html: str
    plain_text: str
    content_type: ContentType
    steps: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class DisplayFeatures:
    """Structural features detected in display content."""

    has_wrappers: bool = False
    has_tables: bool = False
    has_images: bool = False
    has_inline_styles: bool = False


@dataclass(slots=True)
class DisplayResult:
    """Output of the markup-preserving display processor."""

    content: str
    warnings: list[str] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    features: DisplayFeatures = field(default_factory=DisplayFeatures)


@dataclass(slots=True)
class RenderedMessage:
    """Per-message rendering handed to the UI layer."""

    message_id: str
    html: str
    plain_text: str
    content_type: ContentType
    preview: str
    display_html: str | None = None
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "messageId": self.message_id,
            "html": self.html,
            "plainText": self.plain_text,
            "contentType": self.content_type,
            "preview": self.preview,
            "displayHtml": self.display_html,
            "warnings": list(self.warnings),
        }


__all__ = [
    "Address",
    "AttachmentRef",
    "CanonicalMessage",
    "ClassificationResult",
    "ContentType",
    "Conversation",
    "DisplayFeatures",
    "DisplayResult",
    "MessageChunk",
    "MessageSource",
    "NO_CONTENT_PLACEHOLDER",
    "RenderedMessage",
    "TransformResult",
]
