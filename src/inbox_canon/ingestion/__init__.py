"""Ingestion pipeline components."""

from .attachment_data import AttachmentDecodeError
from .attachments import (
    AttachmentCache,
    AttachmentFetchError,
    LazyAttachmentLoader,
    attachment_cache,
)
from .grouping import group_conversations
from .parser import EmailParser, RawMessageParseError
from .pipeline import LoadResult, MessagePipeline
from .reconciler import AttachmentReconciler
from .standardizer import MessageStandardizer, standardize

__all__ = [
    "AttachmentCache",
    "AttachmentDecodeError",
    "AttachmentFetchError",
    "AttachmentReconciler",
    "EmailParser",
    "LazyAttachmentLoader",
    "LoadResult",
    "MessagePipeline",
    "MessageStandardizer",
    "RawMessageParseError",
    "attachment_cache",
    "group_conversations",
    "standardize",
]
