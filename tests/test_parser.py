"""Tests for RFC822 parsing into source records."""

from __future__ import annotations

import base64

import pytest

from inbox_canon.ingestion import EmailParser, RawMessageParseError, group_conversations
from inbox_canon.ingestion.standardizer import standardize

SAMPLE_EMAIL = b"""From: Sender Name <sender@example.com>
To: user@example.com
Cc: another@example.com
Subject: Test Email
Date: Tue, 01 Oct 2024 10:00:00 +0000
Message-ID: <1234@example.com>
In-Reply-To: <thread@example.com>
MIME-Version: 1.0
Content-Type: multipart/mixed; boundary="outer"

--outer
Content-Type: multipart/alternative; boundary="inner"

--inner
Content-Type: text/plain; charset="utf-8"

Hello world.
--inner
Content-Type: text/html; charset="utf-8"

<p>Hello <strong>world</strong>.</p>
--inner--
--outer
Content-Type: application/octet-stream
Content-Disposition: attachment; filename="note.txt"
Content-Transfer-Encoding: base64

VGhpcyBpcyBhIG5vdGUgZmlsZS4=
--outer--
"""


def test_email_parser_extracts_headers_and_bodies() -> None:
    record = EmailParser().parse(SAMPLE_EMAIL)

    assert record["subject"] == "Test Email"
    assert record["from"] == {"address": "sender@example.com", "name": "Sender Name"}
    assert record["to"] == [{"address": "user@example.com", "name": ""}]
    assert record["cc"] == [{"address": "another@example.com", "name": ""}]
    assert record["bcc"] == []
    assert record["messageId"] == "<1234@example.com>"
    assert record["threadId"] == "<thread@example.com>"
    assert record["date"] == "2024-10-01T10:00:00.000Z"
    assert record["text"] == "Hello world."
    assert "<strong>world</strong>" in record["html"]

    assert len(record["attachments"]) == 1
    attachment = record["attachments"][0]
    assert attachment["filename"] == "note.txt"
    assert attachment["contentType"] == "application/octet-stream"
    assert attachment["contentDisposition"] == "attachment"
    assert attachment["size"] == 20
    assert base64.b64decode(attachment["content"]) == b"This is a note file."


def test_email_parser_accepts_base64url_text() -> None:
    encoded = base64.urlsafe_b64encode(SAMPLE_EMAIL).decode("ascii").rstrip("=")

    record = EmailParser()(encoded)

    assert record["subject"] == "Test Email"
    assert len(record["attachments"]) == 1


def test_parsed_record_standardizes_into_canonical_message() -> None:
    record = EmailParser().parse(SAMPLE_EMAIL)

    message = standardize(record, "import")

    assert message.id == "<1234@example.com>"
    assert message.sender.email == "sender@example.com"
    assert message.sender.name == "Sender Name"
    assert message.body == message.body_html
    assert message.body_text == "Hello world."
    assert message.has_attachments
    assert message.attachments[0].filename == "note.txt"


def test_email_parser_rejects_unsupported_types() -> None:
    with pytest.raises(RawMessageParseError):
        EmailParser().parse(12345)  # type: ignore[arg-type]


def _reply(message_id: str, in_reply_to: str | None, references: str | None) -> bytes:
    headers = [
        "From: sender@example.com",
        "To: user@example.com",
        "Subject: Thread",
        f"Message-ID: {message_id}",
    ]
    if in_reply_to:
        headers.append(f"In-Reply-To: {in_reply_to}")
    if references:
        headers.append(f"References: {references}")
    return ("\n".join(headers) + "\n\nBody\n").encode("utf-8")


def test_replies_share_the_thread_root() -> None:
    parser = EmailParser()
    raws = [
        _reply("<m1@example.com>", None, None),
        _reply("<m2@example.com>", "<m1@example.com>", "<m1@example.com>"),
        _reply("<m3@example.com>", "<m2@example.com>", "<m1@example.com> <m2@example.com>"),
    ]

    messages = [standardize(parser.parse(raw), "import") for raw in raws]
    conversations = group_conversations(messages)

    assert [message.thread_id for message in messages] == ["<m1@example.com>"] * 3
    assert list(conversations) == ["<m1@example.com>"]
    assert [email.id for email in conversations["<m1@example.com>"].emails] == [
        "<m1@example.com>",
        "<m2@example.com>",
        "<m3@example.com>",
    ]
