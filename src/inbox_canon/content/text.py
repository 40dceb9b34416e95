"""Small text and markup helpers shared by the content processors."""

from __future__ import annotations

import html
import re

_STYLE_BLOCK = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_ANY_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")

_NAMED_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    # Last, so "&amp;lt;" yields "&lt;" rather than "<".
    ("&amp;", "&"),
)


def normalize_line_endings(text: str) -> str:
    """Convert CRLF and lone CR to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def html_to_text(markup: str) -> str:
    """Strip tags, scripts and styles and collapse whitespace."""
    if not markup:
        return ""
    text = _STYLE_BLOCK.sub("", markup)
    text = _SCRIPT_BLOCK.sub("", text)
    text = _ANY_TAG.sub(" ", text)
    for entity, replacement in _NAMED_ENTITIES:
        text = text.replace(entity, replacement)
    return _WHITESPACE.sub(" ", text).strip()


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def escape_html(text: str) -> str:
    """Escape ``&``, ``<`` and ``>``; quotes are left as typed."""
    return html.escape(text, quote=False)


def anchor(href: str, label: str, *, external: bool = True) -> str:
    """Build an anchor tag; ``href`` is inserted verbatim apart from quotes."""
    href = href.replace('"', "&quot;")
    if external:
        return f'<a href="{href}" target="_blank" rel="noopener noreferrer">{label}</a>'
    return f'<a href="{href}">{label}</a>'


__all__ = [
    "anchor",
    "collapse_whitespace",
    "escape_html",
    "html_to_text",
    "normalize_line_endings",
]
