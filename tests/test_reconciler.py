"""Tests for attachment reconciliation of cloud API messages."""

from __future__ import annotations

import asyncio

from inbox_canon.core.models import MessageSource
from inbox_canon.ingestion import AttachmentReconciler, EmailParser, standardize
from inbox_canon.ingestion.reconciler import extract_raw

RAW_WITH_ATTACHMENT = b"""From: sender@example.com
Subject: Files
Message-ID: <files@example.com>
MIME-Version: 1.0
Content-Type: multipart/mixed; boundary="b"

--b
Content-Type: text/plain

See attached.
--b
Content-Type: text/csv
Content-Disposition: attachment; filename="data.csv"

a,b
1,2
--b--
"""


class RecordingFetcher:
    def __init__(self, payload=None, error: Exception | None = None) -> None:
        self.payload = payload if payload is not None else {"raw": RAW_WITH_ATTACHMENT}
        self.error = error
        self.calls: list[tuple[str, object]] = []

    async def __call__(self, message_id: str, auth=None):
        self.calls.append((message_id, auth))
        if self.error is not None:
            raise self.error
        return self.payload


def _cloud_message(**extra):
    record = {"id": "gm-1", "subject": "Files", "text": "See attached."}
    record.update(extra)
    return standardize(record, "cloud-api")


def test_reconcile_recovers_attachments() -> None:
    fetcher = RecordingFetcher()
    reconciler = AttachmentReconciler(fetcher, EmailParser())
    message = _cloud_message()

    result = asyncio.run(reconciler.reconcile(message, MessageSource.CLOUD_API, "token"))

    assert result is message
    assert fetcher.calls == [("gm-1", "token")]
    assert [item.filename for item in message.attachments] == ["data.csv"]
    assert message.attachments[0].message_id == "gm-1"
    assert message.has_attachments


def test_reconcile_is_idempotent_once_enhanced() -> None:
    fetcher = RecordingFetcher()
    reconciler = AttachmentReconciler(fetcher, EmailParser())
    message = _cloud_message()

    asyncio.run(reconciler.reconcile(message, "cloud-api"))
    asyncio.run(reconciler.reconcile(message, "cloud-api"))
    asyncio.run(reconciler.reconcile(message, "cloud-api"))

    assert len(fetcher.calls) == 1
    assert len(message.attachments) == 1


def test_other_sources_are_never_fetched() -> None:
    fetcher = RecordingFetcher()
    reconciler = AttachmentReconciler(fetcher, EmailParser())
    message = standardize({"id": "x", "text": "hi"}, "imap")

    asyncio.run(reconciler.reconcile(message, "imap"))

    assert fetcher.calls == []
    assert not message.has_attachments


def test_fetch_failure_is_soft() -> None:
    reconciler = AttachmentReconciler(
        RecordingFetcher(error=TimeoutError("slow")), EmailParser()
    )
    message = _cloud_message()

    result = asyncio.run(reconciler.reconcile(message, "cloud-api"))

    assert result is message
    assert message.attachments == []


def test_parse_failure_is_soft() -> None:
    def broken_parser(raw):
        raise ValueError("cannot parse")

    reconciler = AttachmentReconciler(RecordingFetcher(), broken_parser)
    message = _cloud_message()

    asyncio.run(reconciler.reconcile(message, "cloud-api"))

    assert message.attachments == []


def test_async_parser_is_awaited() -> None:
    async def parser(raw):
        return {"attachments": [{"filename": "a.txt", "attachmentId": "att-2"}]}

    reconciler = AttachmentReconciler(RecordingFetcher(payload={"raw": "abc"}), parser)
    message = _cloud_message()

    asyncio.run(reconciler.reconcile(message, "cloud-api"))

    assert message.attachments[0].cache_key == ("gm-1", "att-2")


def test_needs_reconciliation() -> None:
    message = _cloud_message()
    assert AttachmentReconciler.needs_reconciliation(message, "cloud-api") is True
    assert AttachmentReconciler.needs_reconciliation(message, "local") is False


def test_extract_raw_shapes() -> None:
    assert extract_raw({"raw": b"x"}) == b"x"
    assert extract_raw("abc") == "abc"
    assert extract_raw({"raw": ""}) is None
    assert extract_raw(None) is None
