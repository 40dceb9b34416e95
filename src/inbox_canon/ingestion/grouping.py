"""Fold canonical messages into conversations."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from inbox_canon.core.models import CanonicalMessage, Conversation

LOGGER = logging.getLogger(__name__)


def group_conversations(messages: Iterable[CanonicalMessage]) -> dict[str, Conversation]:
    """Group ``messages`` by thread key, preserving first-seen order."""
    conversations: dict[str, Conversation] = {}
    for message in messages:
        key = message.thread_key
        conversation = conversations.get(key)
        if conversation is None:
            conversation = Conversation(id=key, subject=message.subject)
            conversations[key] = conversation
        conversation.add(message)
    LOGGER.debug("Grouped messages into %d conversation(s)", len(conversations))
    return conversations


__all__ = ["group_conversations"]
