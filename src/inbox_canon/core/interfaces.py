"""Protocol interfaces for the collaborators injected into the core."""

from __future__ import annotations

from collections.abc import Awaitable, Iterable, Mapping
from typing import Any, Protocol

from .config import SanitizationMode
from .models import MessageChunk

AuthContext = Mapping[str, Any] | str | None
RawMessagePayload = Mapping[str, Any] | bytes | str
ParsedRawMessage = Mapping[str, Any]


class MailboxProvider(Protocol):
    """Abstraction over a mailbox-protocol source such as IMAP."""

    mailbox: str

    def fetch_since(
        self, last_uid: int | None, batch_size: int
    ) -> Iterable[MessageChunk]:
        """Yield messages with UID greater than the provided checkpoint."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any network resources."""
        raise NotImplementedError


class RawMessageFetcher(Protocol):
    """Fetch the full raw RFC822 message for a provider message id."""

    def __call__(
        self, message_id: str, auth: AuthContext
    ) -> Awaitable[RawMessagePayload]:
        """Return ``{"raw": bytes | base64}`` or the raw payload itself."""
        raise NotImplementedError


class RawMessageParser(Protocol):
    """Parse raw RFC822 content into a record with an ``attachments`` list."""

    def __call__(
        self, raw: bytes | str
    ) -> ParsedRawMessage | Awaitable[ParsedRawMessage]:
        """Parse ``raw``; may be synchronous or a coroutine."""
        raise NotImplementedError


class AttachmentContentFetcher(Protocol):
    """Fetch the base64 payload of a single attachment."""

    def __call__(
        self, message_id: str, attachment_id: str, auth: AuthContext
    ) -> Awaitable[str]:
        """Return the attachment content as a base64 string."""
        raise NotImplementedError


class HtmlSanitizer(Protocol):
    """Sanitize HTML according to a named strictness mode."""

    def __call__(self, html: str, mode: SanitizationMode) -> str:
        """Return sanitized markup."""
        raise NotImplementedError


__all__ = [
    "AttachmentContentFetcher",
    "AuthContext",
    "HtmlSanitizer",
    "MailboxProvider",
    "ParsedRawMessage",
    "RawMessageFetcher",
    "RawMessageParser",
    "RawMessagePayload",
]
