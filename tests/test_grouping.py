"""Tests for conversation grouping."""

from __future__ import annotations

from inbox_canon.ingestion import group_conversations, standardize


def test_messages_group_by_thread_key() -> None:
    messages = [
        standardize({"id": "1", "threadId": "t1", "subject": "First", "from": "a@x.com"}),
        standardize({"id": "2", "threadId": "t1", "subject": "Re: First", "from": "b@x.com"}),
        standardize({"id": "3", "subject": "Solo", "from": "a@x.com", "read": True}),
    ]

    conversations = group_conversations(messages)

    assert list(conversations) == ["t1", "3"]
    thread = conversations["t1"]
    assert thread.subject == "First"
    assert [email.id for email in thread.emails] == ["1", "2"]
    assert thread.participants == ["a@x.com", "b@x.com"]
    assert thread.unread_count == 2
    assert conversations["3"].unread_count == 0


def test_has_attachments_never_resets() -> None:
    with_attachment = standardize(
        {
            "id": "1",
            "threadId": "t",
            "attachments": [{"filename": "a.txt", "content": "aGk="}],
        }
    )
    followups = [standardize({"id": str(index), "threadId": "t"}) for index in range(2, 5)]

    conversations = group_conversations([with_attachment, *followups])

    assert conversations["t"].has_attachments is True
    assert len(conversations["t"].emails) == 4
    assert conversations["t"].to_dict()["hasAttachments"] is True
