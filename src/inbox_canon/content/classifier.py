"""Weighted pattern scoring that decides whether text is HTML or plain text."""

from __future__ import annotations

import re
from dataclasses import dataclass

from inbox_canon.core.models import ClassificationResult

_SCORE_SCALE = 25
_HTML_CONFIDENCE_THRESHOLD = 0.4
_STRUCTURED_MATCH_CAP = 2
_HTML_MATCH_CAP = 3


@dataclass(frozen=True)
class _Signal:
    name: str
    pattern: re.Pattern[str]
    weight: int


# Machine-generated XML and config payloads. Evaluated first; each match
# pulls the score down.
_STRUCTURED_SIGNALS = (
    _Signal("xml-declaration", re.compile(r"<\?xml[^>]*\?>", re.IGNORECASE), -20),
    _Signal(
        "xml-root-elements",
        re.compile(
            r"<(config|configuration|settings|data|xml|root|document|properties)[^>]*>",
            re.IGNORECASE,
        ),
        -15,
    ),
    # Case-sensitive on purpose: upper-case tag names are an XML habit.
    _Signal("uppercase-xml-tags", re.compile(r"<[A-Z][A-Z0-9_]*[^>]*>"), -10),
    _Signal(
        "simple-xml-structure",
        re.compile(r"\A\s*<[^>]+>[^<]*</[^>]+>\s*\Z", re.DOTALL),
        -8,
    ),
    _Signal("namespaced-xml", re.compile(r"<[a-z]+:[a-z]+[^>]*>", re.IGNORECASE), -12),
)

_HTML_SIGNALS = (
    _Signal(
        "html-closing-tags",
        re.compile(
            r"</(div|p|span|table|tr|td|ul|ol|li|h[1-6]|strong|em|b|i|u|a|img|"
            r"section|article|header|footer|nav|main|aside)[^>]*>",
            re.IGNORECASE,
        ),
        10,
    ),
    _Signal(
        "block-elements",
        re.compile(r"<(div|p|span|table|tr|td|ul|ol|li|h[1-6])[^>]*>", re.IGNORECASE),
        8,
    ),
    _Signal(
        "inline-elements",
        re.compile(r"<(strong|em|b|i|u|a|img)[^>]*>", re.IGNORECASE),
        6,
    ),
    _Signal("html-entities", re.compile(r"&[a-zA-Z][a-zA-Z0-9]*;"), 4),
    _Signal("styled-elements", re.compile(r"<[a-z]+[^>]*\s+style\s*=", re.IGNORECASE), 6),
    _Signal("classed-elements", re.compile(r"<[a-z]+[^>]*\s+class\s*=", re.IGNORECASE), 4),
    _Signal(
        "document-structure",
        re.compile(r"<(html|head|body|meta|link|script|style)[^>]*>", re.IGNORECASE),
        12,
    ),
    _Signal("html-doctype", re.compile(r"<!DOCTYPE\s+html", re.IGNORECASE), 15),
)

# Applied at most once each.
_PLAIN_TEXT_SIGNALS = (
    _Signal("single-angle-brackets", re.compile(r"\A[^<]*<[^>]+>[^<]*\Z"), -5),
    _Signal("no-angle-brackets", re.compile(r"\A\s*[^<>]*\s*\Z"), -2),
)

_CONTEXT_SIGNALS = (
    _Signal(
        "html-document-structure",
        re.compile(
            r"<(div|p|html|body)[\s\S]*</(div|p|html|body)>", re.IGNORECASE
        ),
        8,
    ),
    _Signal("html-links", re.compile(r"href\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE), 5),
    _Signal("html-resources", re.compile(r"src\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE), 5),
)


def classify(text: object) -> ClassificationResult:
    """Score ``text`` and decide whether it should be treated as HTML.

    The verdict requires both a positive score and a confidence above 0.4,
    so a lone tag pair or prose such as ``a < b`` stays plain text, and
    structured-data signals can outweigh a handful of HTML-looking tags.
    """
    if not isinstance(text, str) or not text:
        return ClassificationResult(is_html=False, confidence=0.0, indicators=("empty-content",))

    indicators: list[str] = []
    score = 0

    for signal in _STRUCTURED_SIGNALS:
        score += _score_repeated(signal, text, _STRUCTURED_MATCH_CAP, indicators)

    for signal in _HTML_SIGNALS:
        score += _score_repeated(signal, text, _HTML_MATCH_CAP, indicators)

    for signal in (*_PLAIN_TEXT_SIGNALS, *_CONTEXT_SIGNALS):
        if signal.pattern.search(text):
            score += signal.weight
            indicators.append(signal.name)

    confidence = max(0.0, min(1.0, score / _SCORE_SCALE))
    is_html = confidence > _HTML_CONFIDENCE_THRESHOLD and score > 0
    return ClassificationResult(
        is_html=is_html, confidence=confidence, indicators=tuple(indicators)
    )


def looks_like_structured_data(text: str) -> bool:
    """Return ``True`` when any structured-data signal matches ``text``."""
    if not text:
        return False
    return any(signal.pattern.search(text) for signal in _STRUCTURED_SIGNALS)


def _score_repeated(
    signal: _Signal, text: str, cap: int, indicators: list[str]
) -> int:
    matches = sum(1 for _ in signal.pattern.finditer(text))
    if not matches:
        return 0
    indicators.append(f"{signal.name}:{matches}")
    return signal.weight * min(matches, cap)


__all__ = ["classify", "looks_like_structured_data"]
