"""Markup-preserving display rendering in the style of a webmail client.

Unlike :mod:`inbox_canon.content.transformer`, this processor keeps the
source layout: it annotates wrappers and tables instead of rebuilding them,
fills in typography only where the author left no inline style, and strips
only executable content.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from bs4 import BeautifulSoup

from inbox_canon.core.config import DisplaySettings
from inbox_canon.core.models import CanonicalMessage, DisplayFeatures, DisplayResult

from .signatures import strip_html_signature, strip_text_signature
from .text import escape_html

LOGGER = logging.getLogger(__name__)

NO_CONTENT_MARKUP = '<div class="gmail-no-content">No content available</div>'
BASE_TYPOGRAPHY = "font-family: Arial, sans-serif; font-size: 13px; line-height: 1.4;"
BLOCK_MARGIN = " margin: 0 0 16px 0;"
CELL_RESET = "padding: 0; margin: 0;"
IMAGE_RESET = "display: block; max-width: 100%; height: auto;"
TABLE_CELL_DEFAULT = "display: table-cell; vertical-align: top;"

_STYLED_TAGS = ("div", "td", "p", "span", "table", "th", "tr", "tbody", "thead", "tfoot")
_CELL_PRESENTATION_ATTRIBUTES = ("style", "width", "valign", "align", "bgcolor", "class")
_EXECUTABLE_TAGS = ("script", "iframe", "object", "embed")
_URL_ATTRIBUTES = ("href", "src")
_SCRIPT_URI = re.compile(r"^\s*javascript\s*:", re.IGNORECASE)
_URI_WHITESPACE = re.compile(r"[\x00-\x20]")
_ANY_TAG = re.compile(r"<[^>]+>")

_WRAPPER_PATTERNS = (
    re.compile(r"<div[^>]*class\s*=\s*[\"'][^\"']*gmail[^\"']*[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"<div[^>]*id\s*=\s*[\"'][^\"']*gmail[^\"']*[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"<div[^>]*data-gmail[^>]*>", re.IGNORECASE),
)
_TABLE_PATTERNS = (
    re.compile(r"<table[^>]*class\s*=\s*[\"'][^\"']*gmail[^\"']*[\"'][^>]*>", re.IGNORECASE),
    re.compile(
        r"<table[^>]*style\s*=\s*[\"'][^\"']*width\s*:\s*100%[^\"']*[\"'][^>]*>",
        re.IGNORECASE,
    ),
)
_IMAGE_PATTERNS = (
    re.compile(r"<img[^>]*class\s*=\s*[\"'][^\"']*gmail[^\"']*[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"<img[^>]*data-gmail[^>]*>", re.IGNORECASE),
)
_STYLE_PATTERNS = (
    re.compile(r"style\s*=\s*[\"'][^\"']*font-family\s*:\s*arial[^\"']*[\"']", re.IGNORECASE),
    re.compile(r"style\s*=\s*[\"'][^\"']*font-size\s*:\s*13px[^\"']*[\"']", re.IGNORECASE),
    re.compile(r"style\s*=\s*[\"'][^\"']*line-height\s*:\s*1\.4[^\"']*[\"']", re.IGNORECASE),
)

RESPONSIVE_CSS = (
    ".gmail-table-wrapper { overflow-x: auto; max-width: 100%; }"
    " .gmail-table-wrapper table { min-width: 100%; }"
    " .gmail-paragraph { margin: 0 0 16px 0; }"
    " @media screen and (max-width: 600px) {"
    " .gmail-table-wrapper table { font-size: 12px; } }"
)
CONTAINER_TEMPLATE = (
    '<div class="gmail-content" style="font-family: Arial, sans-serif; font-size: 13px;'
    " line-height: 1.4; color: #333; max-width: 100%; word-wrap: break-word;"
    ' overflow-wrap: break-word;">{}</div>'
)


@dataclass(slots=True, frozen=True)
class DisplayOptions:
    """Toggles for the individual display steps."""

    remove_signatures: bool = True
    preserve_structure: bool = True
    handle_quirks: bool = True
    process_tables: bool = True
    apply_styling: bool = True
    enable_responsive: bool = True
    sanitize: bool = True

    @classmethod
    def from_settings(cls, settings: DisplaySettings) -> DisplayOptions:
        return cls(
            remove_signatures=settings.remove_signatures,
            preserve_structure=settings.preserve_structure,
            handle_quirks=settings.handle_quirks,
            process_tables=settings.process_tables,
            apply_styling=settings.apply_styling,
            enable_responsive=settings.enable_responsive,
            sanitize=settings.sanitize,
        )


def text_to_display_html(text: str) -> str:
    """Escape ``text`` and split it into ``gmail-paragraph`` blocks."""
    escaped = escape_html(text.replace("\r\n", "\n"))
    escaped = escaped.replace("\n\n", '</div><div class="gmail-paragraph">')
    escaped = escaped.replace("\n", "<br>")
    return f'<div class="gmail-paragraph">{escaped}</div>'


def detect_features(content: str) -> DisplayFeatures:
    return DisplayFeatures(
        has_wrappers=_any_match(_WRAPPER_PATTERNS, content),
        has_tables=_any_match(_TABLE_PATTERNS, content),
        has_images=_any_match(_IMAGE_PATTERNS, content),
        has_inline_styles=_any_match(_STYLE_PATTERNS, content),
    )


class DisplayProcessor:
    """Render a canonical message for rich display."""

    def __init__(self, options: DisplayOptions | None = None) -> None:
        self._options = options or DisplayOptions()

    def process(
        self,
        message: CanonicalMessage,
        options: DisplayOptions | None = None,
        *,
        is_promotional: bool = False,
    ) -> DisplayResult:
        """Run the display pipeline for ``message``.

        ``is_promotional`` is decided by the caller; signatures are only
        removed from non-promotional mail. Never raises.
        """
        opts = options or self._options
        steps: list[str] = []
        warnings: list[str] = []

        content = self._extract_content(message, opts, is_promotional, steps)
        features = detect_features(content)
        steps.append("Detected structural features")

        try:
            rendered = self._render(content, features, opts, steps)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Display processing failed for %s: %s", message.id, exc)
            warnings.append(f"Display processing failed: {exc}")
            rendered = escape_html(content)

        steps.append("Wrapped in display container")
        return DisplayResult(
            content=CONTAINER_TEMPLATE.format(rendered),
            warnings=warnings,
            steps=steps,
            features=features,
        )

    def _extract_content(
        self,
        message: CanonicalMessage,
        opts: DisplayOptions,
        is_promotional: bool,
        steps: list[str],
    ) -> str:
        strip = opts.remove_signatures and not is_promotional
        if opts.remove_signatures and is_promotional:
            steps.append("Signature removal skipped (promotional message)")

        html = (message.body_html or "").strip()
        if html:
            steps.append("Extracted HTML content")
            if strip:
                html = _strip_signature(html, strip_html_signature, "HTML", steps)
            return html

        for label, value in (("text", message.body_text), ("snippet", message.snippet)):
            text = (value or "").strip()
            if text:
                steps.append(f"Extracted {label} content")
                if strip:
                    text = _strip_signature(text, strip_text_signature, "plain text", steps)
                return text_to_display_html(text)

        steps.append("No content available")
        return NO_CONTENT_MARKUP

    def _render(
        self,
        content: str,
        features: DisplayFeatures,
        opts: DisplayOptions,
        steps: list[str],
    ) -> str:
        soup = BeautifulSoup(content, "html.parser")

        if opts.preserve_structure and features.has_wrappers:
            _preserve_structure(soup)
            steps.append("Preserved wrapper structure")

        if opts.handle_quirks:
            _handle_quirks(soup)
            steps.append("Applied rendering quirk fixes")

        if opts.process_tables and features.has_tables:
            _process_tables(soup)
            steps.append("Processed tables")

        if opts.apply_styling:
            _apply_default_styling(soup)
            steps.append("Applied default styling to unstyled elements")

        if opts.enable_responsive:
            stylesheet = soup.new_tag("style")
            stylesheet.string = RESPONSIVE_CSS
            soup.insert(0, stylesheet)
            steps.append("Enabled responsive styles")

        if opts.sanitize:
            _minimal_sanitize(soup)
            steps.append("Removed executable content")

        return str(soup)


def process_for_display(
    message: CanonicalMessage,
    options: DisplayOptions | None = None,
    *,
    is_promotional: bool = False,
) -> DisplayResult:
    return DisplayProcessor(options).process(message, is_promotional=is_promotional)


def _strip_signature(
    content: str, stripper: Callable[[str], str], label: str, steps: list[str]
) -> str:
    try:
        stripped = stripper(content)
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.warning("Signature removal failed: %s", exc)
        return content
    if stripped == content:
        return content
    if not _ANY_TAG.sub("", stripped).strip():
        steps.append("Signature removal skipped (would remove all content)")
        return content
    steps.append(f"Signature block removed from {label}")
    return stripped


def _has_gmail_token(value: str | list[str] | None) -> bool:
    if isinstance(value, list):
        value = " ".join(value)
    return bool(value) and "gmail" in value.lower()


def _preserve_structure(soup: BeautifulSoup) -> None:
    for div in soup.find_all("div"):
        if div.has_attr("style"):
            continue
        if _has_gmail_token(div.get("class")):
            div["style"] = BASE_TYPOGRAPHY
        elif _has_gmail_token(div.get("id")):
            div["style"] = "font-family: Arial, sans-serif;"


def _handle_quirks(soup: BeautifulSoup) -> None:
    for cell in soup.find_all("td"):
        if not cell.has_attr("style"):
            cell["style"] = CELL_RESET
    for image in soup.find_all("img"):
        if not image.has_attr("style"):
            image["style"] = IMAGE_RESET


def _process_tables(soup: BeautifulSoup) -> None:
    for table in soup.find_all("table"):
        if not _has_gmail_token(table.get("class")):
            continue
        parent = table.parent
        if parent is not None and "gmail-table-wrapper" in (parent.get("class") or []):
            continue
        table.wrap(soup.new_tag("div", attrs={"class": "gmail-table-wrapper"}))
    for cell in soup.find_all("td"):
        if not any(cell.has_attr(name) for name in _CELL_PRESENTATION_ATTRIBUTES):
            cell["style"] = TABLE_CELL_DEFAULT


def _apply_default_styling(soup: BeautifulSoup) -> None:
    for element in soup.find_all(_STYLED_TAGS):
        if element.has_attr("style"):
            continue
        style = BASE_TYPOGRAPHY
        if element.name != "span":
            style += BLOCK_MARGIN
        element["style"] = style


def _minimal_sanitize(soup: BeautifulSoup) -> None:
    for element in soup.find_all(_EXECUTABLE_TAGS):
        if not element.decomposed:
            element.decompose()
    for element in soup.find_all(True):
        for attribute in list(element.attrs):
            if attribute.lower().startswith("on"):
                del element.attrs[attribute]
            elif attribute.lower() in _URL_ATTRIBUTES and _SCRIPT_URI.match(
                _URI_WHITESPACE.sub("", str(element.attrs[attribute]))
            ):
                del element.attrs[attribute]


def _any_match(patterns: Sequence[re.Pattern[str]], content: str) -> bool:
    return any(pattern.search(content) for pattern in patterns)


__all__ = [
    "DisplayOptions",
    "DisplayProcessor",
    "NO_CONTENT_MARKUP",
    "detect_features",
    "process_for_display",
    "text_to_display_html",
]
