"""Turn classified message content into safe HTML plus a plain-text rendering."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from inbox_canon.core.config import ContentSettings, SanitizationMode
from inbox_canon.core.interfaces import HtmlSanitizer
from inbox_canon.core.models import (
    NO_CONTENT_PLACEHOLDER,
    CanonicalMessage,
    TransformResult,
)

from .classifier import classify, looks_like_structured_data
from .text import (
    anchor,
    collapse_whitespace,
    escape_html,
    html_to_text,
    normalize_line_endings,
)

LOGGER = logging.getLogger(__name__)

_BRACKETED_URL = re.compile(r"<(https?://[^\s<>\"]+)>", re.IGNORECASE)
_BARE_URL = re.compile(r"https?://[^\s<>\"'()\x00]+", re.IGNORECASE)
_EMAIL_ADDRESS = re.compile(r"[\w.%+-]+@[\w.-]+\.[A-Za-z]{2,}")
_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_EMPTY_PARAGRAPH = re.compile(r"<p>\s*</p>")
_BREAK_ONLY_PARAGRAPH = re.compile(r"<p>\s*<br>\s*</p>")
_BLOCK_MARKUP = re.compile(
    r"<(p|div|br|table|tr|td|ul|ol|li|h[1-6]|pre|blockquote|section|article)\b",
    re.IGNORECASE,
)
_WRAPPER = '<div class="email-content-wrapper">{}</div>'


@dataclass(slots=True, frozen=True)
class TransformOptions:
    """Switches for one transformation run."""

    enable_url_conversion: bool = True
    enable_email_linking: bool = True
    preserve_line_breaks: bool = True
    sanitization_mode: SanitizationMode = "email"

    @classmethod
    def from_settings(cls, settings: ContentSettings) -> TransformOptions:
        return cls(
            enable_url_conversion=settings.enable_url_conversion,
            enable_email_linking=settings.enable_email_linking,
            preserve_line_breaks=settings.preserve_line_breaks,
            sanitization_mode=settings.sanitization_mode,
        )


class _LinkVault:
    """Park generated anchors behind opaque tokens until escaping is done."""

    def __init__(self) -> None:
        self._links: list[str] = []

    def _stash(self, markup: str) -> str:
        self._links.append(markup)
        return f"\x00{len(self._links) - 1}\x00"

    def _url_anchor(self, url: str) -> str:
        return self._stash(anchor(url, escape_html(url)))

    def protect_urls(self, text: str, *, bracketed: bool = True) -> str:
        if bracketed:
            text = _BRACKETED_URL.sub(lambda match: self._url_anchor(match[1]), text)
        return _BARE_URL.sub(lambda match: self._url_anchor(match[0]), text)

    def protect_emails(self, text: str) -> str:
        return _EMAIL_ADDRESS.sub(
            lambda match: self._stash(
                anchor(f"mailto:{match[0]}", match[0], external=False)
            ),
            text,
        )

    def restore(self, text: str) -> str:
        return _PLACEHOLDER.sub(lambda match: self._links[int(match[1])], text)


def convert_line_breaks(text: str) -> str:
    """Blank lines become paragraph boundaries, single newlines ``<br>``."""
    converted = _PARAGRAPH_BREAK.sub("</p><p>", text)
    converted = converted.replace("\n", "<br>")
    if "</p><p>" in converted:
        converted = f"<p>{converted}</p>"
        converted = _EMPTY_PARAGRAPH.sub("", converted)
        converted = _BREAK_ONLY_PARAGRAPH.sub("<br>", converted)
    return converted


def normalize_plain_text(text: str) -> str:
    """Normalise line endings, expand tabs and trim."""
    return normalize_line_endings(text).replace("\t", "    ").replace("\x00", "").strip()


class ContentTransformer:
    """Produce renderable HTML and plain text for arbitrary message content."""

    def __init__(
        self,
        sanitizer: HtmlSanitizer | None = None,
        *,
        options: TransformOptions | None = None,
    ) -> None:
        self._sanitizer = sanitizer
        self._options = options or TransformOptions()

    def transform(
        self,
        raw_content: object,
        source_kind: str = "content",
        options: TransformOptions | None = None,
    ) -> TransformResult:
        """Classify ``raw_content`` and run the matching branch.

        Never raises: failures inside a branch are logged, recorded as
        warnings and replaced by an escaped rendering of the input.
        """
        opts = options or self._options
        steps = [f"Selected content source: {source_kind}"]
        warnings: list[str] = []

        if isinstance(raw_content, str) and raw_content.strip():
            content = raw_content
        else:
            content = NO_CONTENT_PLACEHOLDER
            warnings.append("No usable content; rendered placeholder")

        classification = classify(content)
        steps.append(
            "Detected content type: %s (confidence: %.2f)"
            % ("HTML" if classification.is_html else "Plain Text", classification.confidence)
        )

        try:
            if classification.is_html:
                result = self._transform_html(content, opts)
            else:
                result = self._transform_text(content, opts)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Content transformation failed for %s: %s", source_kind, exc)
            return TransformResult(
                html=_WRAPPER.format(escape_html(content)),
                plain_text=collapse_whitespace(content),
                content_type="html" if classification.is_html else "text",
                steps=steps + ["Fell back to escaped content"],
                warnings=warnings + [f"Transformation failed: {exc}"],
            )

        result.steps[:0] = steps
        result.warnings[:0] = warnings
        return result

    def transform_message(
        self, message: CanonicalMessage, options: TransformOptions | None = None
    ) -> TransformResult:
        """Transform the best available content of ``message``."""
        content, source_kind = select_content(message)
        return self.transform(content, source_kind, options)

    # HTML branch -------------------------------------------------------------
    def _transform_html(self, content: str, opts: TransformOptions) -> TransformResult:
        steps: list[str] = []
        warnings: list[str] = []

        markup = normalize_line_endings(content).strip()
        steps.append("Normalized HTML content")

        if self._sanitizer is None:
            LOGGER.warning("HTML sanitizer not configured; rendering unsanitized HTML")
            warnings.append("HTML sanitizer not available, HTML not sanitized")
        else:
            markup = _run_step(
                lambda value: self._sanitizer(value, opts.sanitization_mode),
                markup,
                fallback=escape_html,
                label="HTML sanitization",
                warnings=warnings,
            )
            steps.append(f"Sanitized HTML ({opts.sanitization_mode} mode)")

        if opts.preserve_line_breaks and "\n" in markup and not _BLOCK_MARKUP.search(markup):
            markup = convert_line_breaks(markup.strip())
            steps.append("Converted line breaks to HTML")

        plain_text = _run_step(
            html_to_text,
            markup,
            fallback=collapse_whitespace,
            label="Plain-text extraction",
            warnings=warnings,
        )
        steps.append("Extracted plain text version")

        return TransformResult(
            html=markup,
            plain_text=plain_text,
            content_type="html",
            steps=steps,
            warnings=warnings,
        )

    # Text branch -------------------------------------------------------------
    def _transform_text(self, content: str, opts: TransformOptions) -> TransformResult:
        steps: list[str] = []
        warnings: list[str] = []

        text = normalize_plain_text(content)
        steps.append("Normalized plain text")

        vault = _LinkVault()
        if looks_like_structured_data(text):
            steps.append("Detected structured data content")
            if opts.enable_url_conversion:
                text = vault.protect_urls(text, bracketed=False)
            text = vault.restore(escape_html(text))
            steps.append("Escaped structured data with URLs preserved as links")
        else:
            if opts.enable_url_conversion:
                text = vault.protect_urls(text)
                steps.append("Converted URLs to links")
            if opts.enable_email_linking:
                text = vault.protect_emails(text)
                steps.append("Converted emails to mailto links")
            text = vault.restore(escape_html(text))
            steps.append("Escaped HTML entities")

        if opts.preserve_line_breaks:
            text = _run_step(
                convert_line_breaks,
                text,
                fallback=lambda value: value,
                label="Line-break conversion",
                warnings=warnings,
            )
            steps.append("Converted line breaks to HTML")

        return TransformResult(
            html=_WRAPPER.format(text),
            plain_text=normalize_plain_text(content),
            content_type="text",
            steps=steps,
            warnings=warnings,
        )


def select_content(message: CanonicalMessage) -> tuple[str, str]:
    """Pick the best content field of ``message`` and name where it came from."""
    for value, source_kind in (
        (message.html, "message.html"),
        (message.text, "message.text"),
        (message.body, "message.body"),
    ):
        if value and value.strip():
            return value.strip(), source_kind
    return NO_CONTENT_PLACEHOLDER, "fallback"


def transform(
    raw_content: object,
    source_kind: str = "content",
    options: TransformOptions | None = None,
    *,
    sanitizer: HtmlSanitizer | None = None,
) -> TransformResult:
    """Functional entry point around :class:`ContentTransformer`."""
    return ContentTransformer(sanitizer).transform(raw_content, source_kind, options)


def _run_step(
    step: Callable[[str], str],
    value: str,
    *,
    fallback: Callable[[str], str],
    label: str,
    warnings: list[str],
) -> str:
    try:
        return step(value)
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.warning("%s failed: %s", label, exc)
        warnings.append(f"{label} failed ({exc}); used fallback")
        return fallback(value)


__all__ = [
    "ContentTransformer",
    "TransformOptions",
    "convert_line_breaks",
    "normalize_plain_text",
    "select_content",
    "transform",
]
