"""Tests for mapping source records onto canonical messages."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from inbox_canon.core.models import NO_CONTENT_PLACEHOLDER, Address, MessageSource
from inbox_canon.ingestion import MessageStandardizer, standardize
from inbox_canon.ingestion.standardizer import (
    DEFAULT_SUBJECT,
    parse_address,
    parse_address_list,
    stable_message_id,
    strip_data_url_prefix,
)

FIXED_NOW = datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)


def _standardizer(**kwargs) -> MessageStandardizer:
    return MessageStandardizer(clock=lambda: FIXED_NOW, **kwargs)


@pytest.mark.parametrize("raw", [{}, None, {"from": 7, "attachments": "nope"}, {"date": "soon"}])
def test_standardize_is_total(raw) -> None:
    message = _standardizer().standardize(raw, "cloud-api")

    assert message.id
    assert message.message_id
    assert message.body
    assert message.has_attachments == (len(message.attachments) > 0)
    assert message.subject == DEFAULT_SUBJECT


def test_empty_record_gets_placeholder_body_and_time_id() -> None:
    message = _standardizer().standardize({}, "local")

    expected_millis = int(FIXED_NOW.timestamp() * 1000)
    assert message.id == f"{expected_millis}-1"
    assert message.message_id == message.id
    assert message.body == NO_CONTENT_PLACEHOLDER
    assert message.body_text == NO_CONTENT_PLACEHOLDER
    assert message.date == "2025-01-02T03:04:05.000Z"
    assert message.timestamp == expected_millis
    assert message.source is MessageSource.LOCAL
    assert message.read is False


def test_time_ids_are_unique_within_a_batch() -> None:
    standardizer = _standardizer()

    first = standardizer.standardize({"subject": "a"})
    second = standardizer.standardize({"subject": "a"})

    assert first.id != second.id


def test_hash_ids_are_stable_across_ingestion() -> None:
    record = {"from": "a@example.com", "subject": "Hello", "date": "2024-05-01T00:00:00Z"}

    first = _standardizer(id_strategy="hash").standardize(record)
    second = _standardizer(id_strategy="hash").standardize(dict(record))

    assert first.id == second.id == stable_message_id(record)
    assert len(first.id) == 32


def test_unknown_id_strategy_is_rejected() -> None:
    with pytest.raises(ValueError):
        MessageStandardizer(id_strategy="random")  # type: ignore[arg-type]


def test_ids_fall_back_to_each_other() -> None:
    only_id = _standardizer().standardize({"id": "abc"})
    only_message_id = _standardizer().standardize({"messageId": "<m@x>"})

    assert (only_id.id, only_id.message_id) == ("abc", "abc")
    assert (only_message_id.id, only_message_id.message_id) == ("<m@x>", "<m@x>")


def test_body_priority_and_text_derivation() -> None:
    message = standardize({"id": "1", "html": "<p>Hi &amp; bye</p>", "text": "", "body": "x"})

    assert message.body == "<p>Hi &amp; bye</p>"
    assert message.body_html == "<p>Hi &amp; bye</p>"
    assert message.body_text == "Hi & bye"


def test_generic_body_respects_is_html_flag() -> None:
    html_message = standardize({"id": "1", "body": "<p>x</p>", "isHtml": True})
    text_message = standardize({"id": "2", "body": "plain"})

    assert html_message.body_html == "<p>x</p>"
    assert text_message.body_text == "plain"
    assert text_message.body_html == ""


def test_dates_are_normalized_to_utc() -> None:
    rfc = _standardizer().standardize({"id": "1", "date": "Tue, 01 Oct 2024 12:00:00 +0200"})
    millis = _standardizer().standardize({"id": "2", "internalDate": "1700000000000"})
    invalid = _standardizer().standardize({"id": "3", "date": "not a date"})

    assert rfc.date == "2024-10-01T10:00:00.000Z"
    assert millis.timestamp == 1700000000000
    assert invalid.date == "2025-01-02T03:04:05.000Z"


def test_out_of_range_date_only_replaces_the_date() -> None:
    message = _standardizer().standardize(
        {"id": "x", "subject": "S", "html": "<p>kept</p>", "date": "0001-01-01T00:00:00+05:00"}
    )

    assert message.id == "x"
    assert message.subject == "S"
    assert message.body_html == "<p>kept</p>"
    assert message.date == "2025-01-02T03:04:05.000Z"


def test_mapping_failure_keeps_source_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(record):
        raise RuntimeError("boom")

    monkeypatch.setattr("inbox_canon.ingestion.standardizer.resolve_body", broken)

    message = _standardizer().standardize({"id": "keep-me", "messageId": "<m@example.com>"})

    assert message.id == "keep-me"
    assert message.message_id == "<m@example.com>"
    assert message.body == NO_CONTENT_PLACEHOLDER


def test_attachment_inherits_owner_message_id() -> None:
    message = standardize(
        {
            "id": "M",
            "messageId": "<owner@example.com>",
            "attachments": [{"filename": "a.pdf", "attachmentId": "att-1"}],
        },
        "cloud-api",
    )

    attachment = message.attachments[0]
    assert attachment.message_id == "<owner@example.com>"
    assert attachment.cache_key == ("<owner@example.com>", "att-1")
    assert message.has_attachments


def test_attachment_defaults_and_data_url_stripping() -> None:
    message = standardize(
        {
            "id": "1",
            "attachments": [
                {"content": "data:image/png;base64,iVBORw0KGgo=", "cid": "<logo>"},
                "not-a-mapping",
            ],
        }
    )

    assert len(message.attachments) == 1
    attachment = message.attachments[0]
    assert attachment.filename == "attachment_1"
    assert attachment.content_type == "application/octet-stream"
    assert attachment.content == "iVBORw0KGgo="
    assert attachment.content_id == "logo"
    assert attachment.size == 0


def test_read_state_resolution() -> None:
    assert standardize({"id": "1", "unread": True}).read is False
    assert standardize({"id": "2", "read": True}).read is True
    assert standardize({"id": "3", "labelIds": ["INBOX"]}).read is True
    assert standardize({"id": "4", "labelIds": ["INBOX", "UNREAD"]}).read is False


def test_source_tags_are_coerced() -> None:
    assert standardize({"id": "1"}, "imap").source is MessageSource.MAILBOX_PROTOCOL
    assert standardize({"id": "2"}, "gmail").source is MessageSource.CLOUD_API
    assert standardize({"id": "3"}, "something-else").source is MessageSource.LOCAL


def test_parse_address_shapes() -> None:
    assert parse_address("Jane Doe <jane@example.com>") == Address("jane@example.com", "Jane Doe")
    assert parse_address({"address": "a@x.com", "name": "A"}) == Address("a@x.com", "A")
    assert parse_address({"text": "B <b@x.com>"}) == Address("b@x.com", "B")
    assert parse_address({"value": [{"email": "c@x.com"}]}) == Address("c@x.com", None)
    assert parse_address(None) == Address("")


def test_parse_address_list_shapes() -> None:
    assert [item.email for item in parse_address_list("a@x.com, B <b@x.com>")] == [
        "a@x.com",
        "b@x.com",
    ]
    assert [item.email for item in parse_address_list({"value": [{"address": "c@x.com"}]})] == [
        "c@x.com"
    ]
    assert parse_address_list(None) == []


def test_headers_accept_name_value_lists() -> None:
    message = standardize(
        {"id": "1", "headers": [{"name": "X-Test", "value": "1"}, {"bogus": True}]}
    )

    assert message.headers == {"X-Test": "1"}


def test_strip_data_url_prefix() -> None:
    assert strip_data_url_prefix("data:text/plain;base64,aGk=") == "aGk="
    assert strip_data_url_prefix("aGk=") == "aGk="
