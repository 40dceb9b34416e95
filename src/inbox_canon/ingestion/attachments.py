"""On-demand attachment content fetching with a process-wide cache."""

from __future__ import annotations

import asyncio
import logging

from inbox_canon.core.interfaces import AttachmentContentFetcher, AuthContext
from inbox_canon.core.models import AttachmentRef

LOGGER = logging.getLogger(__name__)

CacheKey = tuple[str, str]
AttachmentContent = str | bytes


class AttachmentFetchError(RuntimeError):
    """Raised when attachment content cannot be obtained on demand."""

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason

    @property
    def notification(self) -> str:
        """User-facing message for the UI layer."""
        return f"Unable to preview/download {self.filename}: {self.reason}"


class AttachmentCache:
    """Keyed store for fetched attachment content.

    Entries never expire; the cache lives as long as the process. Writes for
    an existing key replace the value.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, AttachmentContent] = {}

    def get(self, key: CacheKey) -> AttachmentContent | None:
        value = self._entries.get(key)
        LOGGER.debug("Attachment cache %s for %s", "hit" if value is not None else "miss", key)
        return value

    def set(self, key: CacheKey, value: AttachmentContent) -> None:
        self._entries[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def size(self) -> int:
        return len(self._entries)


# Global cache instance
attachment_cache = AttachmentCache()


class LazyAttachmentLoader:
    """Populate ``AttachmentRef.content`` on first request.

    Without ``single_flight`` concurrent first requests for the same key may
    each call the fetcher; the last write wins and the values are equivalent.
    With ``single_flight`` they await one shared task.
    """

    def __init__(
        self,
        fetcher: AttachmentContentFetcher,
        *,
        cache: AttachmentCache | None = None,
        single_flight: bool = False,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache if cache is not None else attachment_cache
        self._single_flight = single_flight
        self._in_flight: dict[CacheKey, asyncio.Task[AttachmentContent]] = {}

    @property
    def cache(self) -> AttachmentCache:
        return self._cache

    async def load(
        self, attachment: AttachmentRef, auth: AuthContext = None
    ) -> AttachmentContent:
        """Return the attachment content, fetching and caching it if needed."""
        if attachment.content:
            return attachment.content

        key = attachment.cache_key
        if key is None:
            raise AttachmentFetchError(
                attachment.filename, "attachment is missing its message or attachment id"
            )

        cached = self._cache.get(key)
        if cached is not None:
            attachment.content = cached
            return cached

        if self._single_flight:
            content = await self._shared_fetch(key, attachment.filename, auth)
        else:
            content = await self._fetch(key, attachment.filename, auth)
        attachment.content = content
        return content

    async def _shared_fetch(
        self, key: CacheKey, filename: str, auth: AuthContext
    ) -> AttachmentContent:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(key, filename, auth))
            self._in_flight[key] = task
            task.add_done_callback(lambda _done: self._in_flight.pop(key, None))
        else:
            LOGGER.debug("Joining in-flight fetch for %s", key)
        return await task

    async def _fetch(
        self, key: CacheKey, filename: str, auth: AuthContext
    ) -> AttachmentContent:
        message_id, attachment_id = key
        try:
            content = await self._fetcher(message_id, attachment_id, auth)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning(
                "Failed to fetch attachment %s of message %s: %s",
                attachment_id,
                message_id,
                exc,
            )
            raise AttachmentFetchError(filename, str(exc) or type(exc).__name__) from exc
        if not content:
            raise AttachmentFetchError(filename, "no content returned")
        self._cache.set(key, content)
        return content


__all__ = [
    "AttachmentCache",
    "AttachmentFetchError",
    "LazyAttachmentLoader",
    "attachment_cache",
]
