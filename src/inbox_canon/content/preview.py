"""One-line message previews for list views."""

from __future__ import annotations

from inbox_canon.core.models import NO_CONTENT_PLACEHOLDER, CanonicalMessage

from .text import html_to_text, normalize_line_endings

NO_PREVIEW_TEXT = "No content available"


def generate_preview(message: CanonicalMessage, max_length: int = 80) -> str:
    """Return the first non-blank line of the best plain text, truncated.

    Longer lines are cut to ``max_length`` characters followed by ``...``.
    """
    text = _best_plain_text(message)
    for line in normalize_line_endings(text).split("\n"):
        stripped = line.strip()
        if stripped:
            if len(stripped) > max_length:
                return stripped[:max_length] + "..."
            return stripped
    return NO_PREVIEW_TEXT


def _best_plain_text(message: CanonicalMessage) -> str:
    for candidate in (message.body_text, html_to_text(message.body_html or ""), message.body):
        if candidate and candidate.strip() not in ("", NO_CONTENT_PLACEHOLDER):
            return candidate
    return ""


__all__ = ["NO_PREVIEW_TEXT", "generate_preview"]
