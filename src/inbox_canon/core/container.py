"""Simple service container for dependency management."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from .config import AppSettings
from .interfaces import (
    AttachmentContentFetcher,
    HtmlSanitizer,
    RawMessageFetcher,
    RawMessageParser,
)

T = TypeVar("T")


class ServiceContainer:
    """Minimal dependency container with lazy singleton semantics."""

    def __init__(self) -> None:
        """Initialise container storage."""
        self._factories: dict[str, Callable[[ServiceContainer], Any]] = {}
        self._instances: dict[str, Any] = {}

    def register(self, key: str, factory: Callable[[ServiceContainer], T]) -> None:
        """Register a factory under a given key."""
        self._factories[key] = factory
        self._instances.pop(key, None)

    def register_instance(self, key: str, instance: Any) -> None:
        self._instances[key] = instance

    def resolve(self, key: str) -> Any:
        """Resolve a dependency by key, invoking its factory once."""
        if key in self._instances:
            return self._instances[key]
        if key not in self._factories:
            msg = f"Service '{key}' is not registered"
            raise KeyError(msg)
        instance = self._factories[key](self)
        self._instances[key] = instance
        return instance

    def try_resolve(self, key: str) -> Any | None:
        """Resolve a dependency if available; return None otherwise."""
        try:
            return self.resolve(key)
        except KeyError:
            return None

    def clear(self) -> None:
        """Clear cached singleton instances."""
        self._instances.clear()


def build_container(
    settings: AppSettings,
    *,
    sanitizer: HtmlSanitizer | None = None,
    fetch_raw_message: RawMessageFetcher | None = None,
    parse_raw_message: RawMessageParser | None = None,
    attachment_fetcher: AttachmentContentFetcher | None = None,
) -> ServiceContainer:
    """Wire the processing stages from ``settings`` and injected capabilities.

    The reconciler and lazy attachment loader are only registered when their
    fetch capabilities are supplied.
    """
    # pylint: disable=import-outside-toplevel
    from inbox_canon.content.display import DisplayOptions, DisplayProcessor
    from inbox_canon.content.promotional import PromotionalDetector
    from inbox_canon.content.sanitizer import SoupSanitizer
    from inbox_canon.content.transformer import ContentTransformer, TransformOptions
    from inbox_canon.ingestion.attachments import LazyAttachmentLoader
    from inbox_canon.ingestion.parser import EmailParser
    from inbox_canon.ingestion.pipeline import MessagePipeline
    from inbox_canon.ingestion.reconciler import AttachmentReconciler
    from inbox_canon.ingestion.standardizer import MessageStandardizer

    container = ServiceContainer()
    container.register_instance("settings", settings)
    container.register(
        "sanitizer", lambda _c: sanitizer if sanitizer is not None else SoupSanitizer()
    )
    container.register(
        "standardizer",
        lambda _c: MessageStandardizer(id_strategy=settings.standardizer.id_strategy),
    )
    container.register(
        "transformer",
        lambda c: ContentTransformer(
            c.resolve("sanitizer"),
            options=TransformOptions.from_settings(settings.content),
        ),
    )
    container.register(
        "display", lambda _c: DisplayProcessor(DisplayOptions.from_settings(settings.display))
    )
    container.register("promotional", lambda _c: PromotionalDetector())
    container.register(
        "parser",
        lambda _c: parse_raw_message if parse_raw_message is not None else EmailParser(),
    )

    if fetch_raw_message is not None and settings.attachments.reconcile_enabled:
        container.register(
            "reconciler",
            lambda c: AttachmentReconciler(fetch_raw_message, c.resolve("parser")),
        )
    if attachment_fetcher is not None:
        container.register(
            "attachment_loader",
            lambda _c: LazyAttachmentLoader(
                attachment_fetcher, single_flight=settings.attachments.single_flight
            ),
        )

    container.register(
        "pipeline",
        lambda c: MessagePipeline(
            c.resolve("standardizer"),
            c.resolve("transformer"),
            reconciler=c.try_resolve("reconciler"),
            display=c.resolve("display"),
            promotional=c.resolve("promotional"),
            processing_mode=settings.content.processing_mode,
        ),
    )
    return container


__all__ = ["ServiceContainer", "build_container"]
