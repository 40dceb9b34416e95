"""Tests for lazy attachment fetching and the attachment cache."""

from __future__ import annotations

import asyncio

import pytest

from inbox_canon.core.models import AttachmentRef
from inbox_canon.ingestion import AttachmentCache, AttachmentFetchError, LazyAttachmentLoader


def _attachment(attachment_id: str | None = "att-1", message_id: str | None = "msg-1"):
    return AttachmentRef(
        filename="photo.png",
        content_type="image/png",
        size=10,
        attachment_id=attachment_id,
        message_id=message_id,
    )


class CountingFetcher:
    """Fetcher stub recording calls and optionally yielding control."""

    def __init__(self, content: str = "aGk=", delay: float = 0.0) -> None:
        self.content = content
        self.delay = delay
        self.calls: list[tuple[str, str, object]] = []

    async def __call__(self, message_id: str, attachment_id: str, auth=None) -> str:
        self.calls.append((message_id, attachment_id, auth))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.content


def test_load_fetches_once_and_caches() -> None:
    fetcher = CountingFetcher()
    cache = AttachmentCache()
    loader = LazyAttachmentLoader(fetcher, cache=cache)

    first = _attachment()
    second = _attachment()
    asyncio.run(loader.load(first, "token"))
    asyncio.run(loader.load(second))

    assert first.content == "aGk="
    assert second.content == "aGk="
    assert fetcher.calls == [("msg-1", "att-1", "token")]
    assert ("msg-1", "att-1") in cache
    assert cache.size() == 1


def test_existing_content_skips_fetch() -> None:
    fetcher = CountingFetcher()
    attachment = _attachment()
    attachment.content = "ZXhpc3Rpbmc="

    result = asyncio.run(LazyAttachmentLoader(fetcher, cache=AttachmentCache()).load(attachment))

    assert result == "ZXhpc3Rpbmc="
    assert fetcher.calls == []


def test_missing_ids_raise_notification() -> None:
    loader = LazyAttachmentLoader(CountingFetcher(), cache=AttachmentCache())

    with pytest.raises(AttachmentFetchError) as excinfo:
        asyncio.run(loader.load(_attachment(attachment_id=None)))

    assert excinfo.value.notification.startswith("Unable to preview/download photo.png")


def test_fetch_failure_surfaces_as_notification() -> None:
    async def failing(message_id: str, attachment_id: str, auth=None) -> str:
        raise ConnectionError("network down")

    cache = AttachmentCache()
    loader = LazyAttachmentLoader(failing, cache=cache)

    with pytest.raises(AttachmentFetchError) as excinfo:
        asyncio.run(loader.load(_attachment()))

    assert excinfo.value.notification == "Unable to preview/download photo.png: network down"
    assert cache.size() == 0


def test_empty_fetch_result_is_an_error() -> None:
    loader = LazyAttachmentLoader(CountingFetcher(content=""), cache=AttachmentCache())

    with pytest.raises(AttachmentFetchError):
        asyncio.run(loader.load(_attachment()))


def test_concurrent_requests_may_fetch_twice_without_single_flight() -> None:
    fetcher = CountingFetcher(delay=0.01)
    loader = LazyAttachmentLoader(fetcher, cache=AttachmentCache())

    async def run() -> None:
        await asyncio.gather(loader.load(_attachment()), loader.load(_attachment()))

    asyncio.run(run())

    assert len(fetcher.calls) == 2


def test_single_flight_shares_one_fetch() -> None:
    fetcher = CountingFetcher(delay=0.01)
    loader = LazyAttachmentLoader(fetcher, cache=AttachmentCache(), single_flight=True)
    first = _attachment()
    second = _attachment()

    async def run() -> None:
        await asyncio.gather(loader.load(first), loader.load(second))

    asyncio.run(run())

    assert len(fetcher.calls) == 1
    assert first.content == second.content == "aGk="


def test_cache_entries_are_replaced_not_expired() -> None:
    cache = AttachmentCache()
    cache.set(("m1", "a"), "x")
    cache.set(("m1", "a"), "y")
    cache.set(("m2", "a"), "z")

    assert cache.get(("m1", "a")) == "y"
    assert ("m2", "a") in cache
    assert cache.size() == 2
