"""Trailing signature detection for plain-text and HTML bodies."""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

LOGGER = logging.getLogger(__name__)

SIGNATURE_SEPARATOR = re.compile(r"^-- ?$")

# Matched against the trimmed, lower-cased line with ``startswith``.
SIGNATURE_PHRASES: tuple[str, ...] = (
    "best regards",
    "regards",
    "kind regards",
    "thanks",
    "thank you",
    "cheers",
    "sent from my iphone",
    "sent from my ipad",
    "sent from my android",
    "sent from my mobile",
    "sent from my phone",
    "sincerely",
    "yours truly",
    "yours faithfully",
    "yours sincerely",
    "warm regards",
    "with appreciation",
    "with gratitude",
    "respectfully",
    "cordially",
    "take care",
    "ciao",
    "saludos",
    "mit freundlichen grüßen",
    "cordialement",
    "merci",
    "danke",
    "gracias",
    "obrigado",
    "arigato",
)

SIGNATURE_MARKERS: tuple[str, ...] = (
    "gmail_signature",
    "signature",
    "outlook-signature",
    "msoSignature",
    "email-signature",
    "sig",
    "mail-signature",
    "footer-signature",
)

SHORT_BLOCK_LIMIT = 300


def find_signature_start(lines: list[str]) -> int | None:
    """Return the index of the earliest signature line, if any."""
    for index, line in enumerate(lines):
        if SIGNATURE_SEPARATOR.match(line.rstrip("\r")):
            return index
        lowered = line.strip().lower()
        if lowered and lowered.startswith(SIGNATURE_PHRASES):
            return index
    return None


def strip_text_signature(text: str) -> str:
    """Truncate ``text`` at the first separator or closing phrase."""
    lines = text.split("\n")
    cut = find_signature_start(lines)
    if cut is None:
        return text
    return "\n".join(lines[:cut]).strip()


def strip_html_signature(markup: str) -> str:
    """Remove known signature blocks and short ``<hr>``-introduced footers.

    Returns ``markup`` unchanged when nothing was removed.
    """
    soup = BeautifulSoup(markup, "html.parser")
    removed = False

    for marker in SIGNATURE_MARKERS:
        for element in soup.find_all(class_=marker) + soup.find_all(id=marker):
            if element.decomposed:
                continue
            element.decompose()
            removed = True

    for rule in soup.find_all("hr"):
        if rule.decomposed:
            continue
        follower = rule.find_next_sibling()
        if follower is None:
            continue
        text = follower.get_text()
        if text and len(text) < SHORT_BLOCK_LIMIT:
            follower.decompose()
            rule.decompose()
            removed = True

    if not removed:
        return markup
    LOGGER.debug("Removed signature markup")
    return str(soup).strip()


__all__ = [
    "SIGNATURE_MARKERS",
    "SIGNATURE_PHRASES",
    "find_signature_start",
    "strip_html_signature",
    "strip_text_signature",
]
