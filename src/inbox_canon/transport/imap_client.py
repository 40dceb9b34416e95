"""IMAP transport adapter providing raw message access."""

from __future__ import annotations

import asyncio
import imaplib
import logging
from collections.abc import Iterable, Iterator
from types import TracebackType

from ..core.config import ImapSettings
from ..core.interfaces import AuthContext, MailboxProvider
from ..core.models import MessageChunk

LOGGER = logging.getLogger(__name__)


class ImapError(RuntimeError):
    """Wrap low level IMAP errors with additional context."""


class ImapClient(MailboxProvider):
    """Thin wrapper around ``imaplib`` offering typed fetch helpers."""

    def __init__(self, settings: ImapSettings, mailbox: str | None = None) -> None:
        """Initialise the client with configuration settings and mailbox."""
        self._settings = settings
        self._connection: imaplib.IMAP4 | imaplib.IMAP4_SSL | None = None
        self.mailbox = mailbox or settings.mailbox

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> ImapClient:
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # Public API ---------------------------------------------------------------
    def connect(self) -> None:
        """Establish IMAP connection and select the configured mailbox."""
        if self._connection is not None:
            return

        username = self._settings.username
        password = self._settings.app_password
        if username is None or password is None:
            raise ImapError("IMAP credentials are not configured")

        try:
            LOGGER.debug(
                "Connecting to IMAP host %s:%s (ssl=%s)",
                self._settings.host,
                self._settings.port,
                self._settings.use_ssl,
            )
            if self._settings.use_ssl:
                connection: imaplib.IMAP4 | imaplib.IMAP4_SSL = imaplib.IMAP4_SSL(
                    self._settings.host, self._settings.port
                )
            else:
                connection = imaplib.IMAP4(self._settings.host, self._settings.port)

            LOGGER.debug("Authenticating as %s", username)
            connection.login(username, password)
            status, _ = connection.select(self.mailbox, readonly=True)
            if status != "OK":
                raise ImapError(f"Unable to select mailbox '{self.mailbox}'")
            self._connection = connection
        except imaplib.IMAP4.error as exc:  # pragma: no cover - network dependent
            raise ImapError("Failed to connect to IMAP server") from exc

    def fetch_since(
        self, last_uid: int | None, batch_size: int
    ) -> Iterable[MessageChunk]:
        """Yield messages whose UID exceeds ``last_uid`` in ascending order."""
        connection = self._require_connection()
        start_uid = 1 if last_uid is None else last_uid + 1
        LOGGER.debug("Searching for messages from UID %s", start_uid)
        status, data = connection.uid("SEARCH", None, f"{start_uid}:*")
        if status != "OK":
            raise ImapError("Failed to search for message UIDs")

        raw_ids = data[0].split() if data and data[0] else []
        if not raw_ids:
            LOGGER.debug("No new messages found")
            return []

        def generator() -> Iterator[MessageChunk]:
            for chunk in _chunked(raw_ids, batch_size):
                for uid_bytes in chunk:
                    uid = int(uid_bytes.decode())
                    # IMAP returns the last message for "N:*" even when N is past it.
                    if uid < start_uid:
                        continue
                    payload = self.fetch_raw(uid)
                    if payload is None:
                        LOGGER.warning("No RFC822 payload returned for UID %s", uid)
                        continue
                    yield MessageChunk(uid=uid, raw=payload)

        return generator()

    def fetch_raw(self, uid: int | str) -> bytes | None:
        """Return the RFC822 payload for one UID."""
        connection = self._require_connection()
        uid_str = str(uid)
        LOGGER.debug("Fetching RFC822 payload for UID %s", uid_str)
        try:
            status, fetch_data = connection.uid("FETCH", uid_str, "(RFC822)")
        except imaplib.IMAP4.error as exc:  # pragma: no cover - network dependent
            raise ImapError(f"IMAP error while fetching UID {uid_str}") from exc
        if status != "OK":
            raise ImapError(f"Failed to fetch message UID {uid_str}")
        return _extract_rfc822(fetch_data)

    def close(self) -> None:
        """Terminate the IMAP session cleanly."""
        if self._connection is None:
            return
        try:
            LOGGER.debug("Closing IMAP connection")
            self._connection.close()
        except imaplib.IMAP4.error:  # pragma: no cover - depends on server state
            LOGGER.debug("IMAP close raised; continuing with logout")
        finally:
            try:
                self._connection.logout()
            except imaplib.IMAP4.error:  # pragma: no cover
                LOGGER.debug("IMAP logout raised; suppressing during shutdown")
            self._connection = None

    # Internal helpers ---------------------------------------------------------
    def _require_connection(self) -> imaplib.IMAP4 | imaplib.IMAP4_SSL:
        if self._connection is None:
            raise ImapError("IMAP connection has not been established")
        return self._connection


class ImapRawMessageFetcher:
    """Async raw-message fetch capability backed by a blocking IMAP client.

    Message ids are IMAP UIDs; ``auth`` is ignored because the client is
    already logged in.
    """

    def __init__(self, client: ImapClient) -> None:
        self._client = client

    async def __call__(self, message_id: str, auth: AuthContext = None) -> dict[str, bytes]:
        raw = await asyncio.to_thread(self._client.fetch_raw, message_id)
        if raw is None:
            raise ImapError(f"No RFC822 payload returned for UID {message_id}")
        return {"raw": raw}


def _chunked(items: Iterable[bytes], size: int) -> Iterator[list[bytes]]:
    """Yield successive lists of ``size`` elements."""
    bucket: list[bytes] = []
    for item in items:
        bucket.append(item)
        if len(bucket) >= size:
            yield bucket
            bucket = []
    if bucket:
        yield bucket


def _extract_rfc822(fetch_data: list[tuple[bytes, bytes] | bytes]) -> bytes | None:
    """Extract RFC822 payload from ``imaplib`` response chunks."""
    for entry in fetch_data or []:
        if isinstance(entry, tuple) and len(entry) == 2:
            return entry[1]
    return None


__all__ = ["ImapClient", "ImapError", "ImapRawMessageFetcher"]
