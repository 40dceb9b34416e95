"""Allow-list HTML sanitizer built on BeautifulSoup."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Comment, Tag

from inbox_canon.core.config import SanitizationMode

LOGGER = logging.getLogger(__name__)

# Dropped with their content whatever the mode.
_ALWAYS_DROPPED = frozenset(
    {
        "script",
        "iframe",
        "object",
        "embed",
        "form",
        "input",
        "button",
        "base",
        "meta",
        "link",
        "head",
        "title",
        "noscript",
    }
)
_URL_ATTRIBUTES = frozenset({"href", "src"})
_SAFE_URI = re.compile(
    r"^(?:(?:(?:f|ht)tps?|mailto|tel|callto|cid|xmpp|data):|[^a-z]|[a-z+.\-]+(?:[^a-z+.\-:]|$))",
    re.IGNORECASE,
)
_SCRIPT_URI = re.compile(r"^\s*(javascript|vbscript)\s*:", re.IGNORECASE)
# Browsers drop these from URLs before resolving the scheme.
_URI_WHITESPACE = re.compile(r"[\x00-\x20]")

_EMAIL_TAGS = frozenset(
    {
        "p", "br", "strong", "b", "em", "i", "u", "span", "div",
        "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "li",
        "blockquote", "pre", "code", "a", "img", "table", "thead", "tbody",
        "tfoot", "tr", "td", "th", "hr", "small", "sub", "sup", "mark",
        "del", "ins", "center", "font", "style",
    }
)
_EMAIL_ATTRIBUTES = frozenset(
    {
        "href", "src", "alt", "title", "width", "height", "style", "class",
        "id", "target", "border", "cellpadding", "cellspacing", "align",
        "valign", "bgcolor", "color", "face", "size", "loading", "rel",
    }
)


@dataclass(frozen=True)
class _Policy:
    tags: frozenset[str]
    attributes: frozenset[str]


POLICIES: dict[str, _Policy] = {
    "email": _Policy(tags=_EMAIL_TAGS, attributes=_EMAIL_ATTRIBUTES),
    "ui": _Policy(
        tags=frozenset(
            {"span", "div", "p", "br", "strong", "b", "em", "i", "u", "small", "code"}
        ),
        attributes=frozenset({"class", "id", "style"}),
    ),
    "strict": _Policy(
        tags=frozenset({"p", "br", "strong", "b", "em", "i", "u"}),
        attributes=frozenset(),
    ),
}


class SoupSanitizer:
    """Callable sanitizer keeping only the tags and attributes a mode allows.

    Disallowed tags are unwrapped so their text survives; executable and
    embedding elements are removed together with their content.
    """

    def __init__(self, policies: dict[str, _Policy] | None = None) -> None:
        self._policies = policies or POLICIES

    def __call__(self, html: str, mode: SanitizationMode = "email") -> str:
        return self.sanitize(html, mode)

    def sanitize(self, html: str, mode: SanitizationMode = "email") -> str:
        if not html:
            return ""
        policy = self._policies.get(mode)
        if policy is None:
            raise ValueError(f"Unknown sanitization mode: {mode}")

        soup = BeautifulSoup(html, "html.parser")

        for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
            comment.extract()

        for element in soup.find_all(True):
            if element.decomposed:
                continue
            name = element.name.lower()
            if name in _ALWAYS_DROPPED or (name == "style" and name not in policy.tags):
                element.decompose()
                continue
            if name not in policy.tags:
                element.unwrap()
                continue
            _filter_attributes(element, policy.attributes)

        cleaned = str(soup)
        LOGGER.debug("Sanitized %d characters in %s mode", len(html), mode)
        return cleaned


def _filter_attributes(element: Tag, allowed: frozenset[str]) -> None:
    for attribute in list(element.attrs):
        lowered = attribute.lower()
        if lowered.startswith("on") or lowered not in allowed:
            del element.attrs[attribute]
            continue
        if lowered in _URL_ATTRIBUTES:
            value = element.attrs[attribute]
            if isinstance(value, list):
                value = " ".join(value)
            value = _URI_WHITESPACE.sub("", value)
            if _SCRIPT_URI.match(value) or not _SAFE_URI.match(value):
                del element.attrs[attribute]


__all__ = ["POLICIES", "SoupSanitizer"]
