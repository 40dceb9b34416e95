"""Load-cycle orchestration: standardize, reconcile, render, group."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from inbox_canon.content.display import DisplayProcessor
from inbox_canon.content.preview import generate_preview
from inbox_canon.content.promotional import PromotionalDetector
from inbox_canon.content.transformer import ContentTransformer
from inbox_canon.core.interfaces import AuthContext
from inbox_canon.core.models import (
    NO_CONTENT_PLACEHOLDER,
    CanonicalMessage,
    Conversation,
    MessageSource,
    RenderedMessage,
)

from .grouping import group_conversations
from .reconciler import AttachmentReconciler
from .standardizer import MessageStandardizer

LOGGER = logging.getLogger(__name__)

ProcessingMode = Literal["standard", "gmail-style"]


@dataclass(slots=True)
class LoadStats:
    """Counters describing one load cycle."""

    total: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    with_html: int = 0
    with_text: int = 0
    with_attachments: int = 0
    without_content: int = 0

    @classmethod
    def from_messages(cls, messages: Iterable[CanonicalMessage]) -> LoadStats:
        stats = cls()
        sources: Counter[str] = Counter()
        for message in messages:
            stats.total += 1
            sources[message.source.value] += 1
            if message.body_html.strip():
                stats.with_html += 1
            if message.body_text.strip() and message.body_text != NO_CONTENT_PLACEHOLDER:
                stats.with_text += 1
            if message.has_attachments:
                stats.with_attachments += 1
            if message.body == NO_CONTENT_PLACEHOLDER:
                stats.without_content += 1
        stats.by_source = dict(sources)
        return stats


@dataclass(slots=True)
class LoadResult:
    """Everything the UI and search layers consume after a load cycle."""

    messages: list[CanonicalMessage]
    conversations: dict[str, Conversation]
    rendered: dict[str, RenderedMessage]
    stats: LoadStats


class MessagePipeline:
    """Turn raw source records into rendered, grouped canonical messages."""

    def __init__(
        self,
        standardizer: MessageStandardizer,
        transformer: ContentTransformer,
        *,
        reconciler: AttachmentReconciler | None = None,
        display: DisplayProcessor | None = None,
        promotional: PromotionalDetector | None = None,
        processing_mode: ProcessingMode = "standard",
        preview_length: int = 80,
    ) -> None:
        # pylint: disable=too-many-arguments
        """Initialise the pipeline with its processing stages."""
        self._standardizer = standardizer
        self._transformer = transformer
        self._reconciler = reconciler
        self._display = display or DisplayProcessor()
        self._promotional = promotional or PromotionalDetector()
        self._processing_mode = processing_mode
        self._preview_length = preview_length

    async def load(
        self,
        records: Iterable[Mapping[str, Any]],
        source: str | MessageSource,
        auth: AuthContext = None,
    ) -> LoadResult:
        """Run one load cycle over ``records``.

        Reconciliation fans out across messages; each message is rendered
        only after its own reconciliation finished.
        """
        source_tag = MessageSource.coerce(source)
        messages = [self._standardizer.standardize(record, source_tag) for record in records]
        LOGGER.info("Standardized %d message(s) from %s", len(messages), source_tag.value)

        rendered_list = await asyncio.gather(
            *(self._enhance_and_render(message, source_tag, auth) for message in messages)
        )
        rendered = {item.message_id: item for item in rendered_list}

        conversations = group_conversations(messages)
        stats = LoadStats.from_messages(messages)
        LOGGER.info(
            "Load complete: total=%s html=%s text=%s attachments=%s empty=%s "
            "conversations=%s sources=%s",
            stats.total,
            stats.with_html,
            stats.with_text,
            stats.with_attachments,
            stats.without_content,
            len(conversations),
            stats.by_source,
        )
        return LoadResult(
            messages=messages,
            conversations=conversations,
            rendered=rendered,
            stats=stats,
        )

    def render(self, message: CanonicalMessage) -> RenderedMessage:
        """Produce the standard (and optionally display) rendering."""
        result = self._transformer.transform_message(message)
        warnings = list(result.warnings)

        display_html: str | None = None
        if self._processing_mode == "gmail-style":
            is_promotional = self._promotional.is_promotional(message)
            display = self._display.process(message, is_promotional=is_promotional)
            display_html = display.content
            warnings.extend(display.warnings)

        return RenderedMessage(
            message_id=message.id,
            html=result.html,
            plain_text=result.plain_text,
            content_type=result.content_type,
            preview=generate_preview(message, self._preview_length),
            display_html=display_html,
            warnings=tuple(warnings),
        )

    async def _enhance_and_render(
        self,
        message: CanonicalMessage,
        source: MessageSource,
        auth: AuthContext,
    ) -> RenderedMessage:
        if self._reconciler is not None:
            await self._reconciler.reconcile(message, source, auth)
        return self.render(message)


__all__ = ["LoadResult", "LoadStats", "MessagePipeline", "ProcessingMode"]
