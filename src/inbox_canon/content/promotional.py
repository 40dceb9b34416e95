"""Keyword heuristics flagging bulk marketing mail."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from inbox_canon.core.models import CanonicalMessage

PROMOTIONAL_THRESHOLD = 0.3


@dataclass(slots=True, frozen=True)
class PromotionalVerdict:
    """Outcome of promotional-mail detection."""

    is_promotional: bool
    confidence: float
    reasons: tuple[str, ...] = field(default_factory=tuple)


class PromotionalDetector:
    """Score messages for marketing signals.

    Unsubscribe language is the strongest signal, marketing keywords add a
    bounded amount each, and known bulk-mail service sender domains add a
    fixed bonus.
    """

    def __init__(
        self,
        *,
        unsubscribe_patterns: Sequence[str] | None = None,
        keywords: Sequence[str] | None = None,
        domains: Sequence[str] | None = None,
    ) -> None:
        self._unsubscribe_patterns = tuple(
            unsubscribe_patterns
            if unsubscribe_patterns is not None
            else (
                "unsubscribe",
                "opt-out",
                "opt out",
                "remove from list",
                "remove me",
                "stop receiving",
                "cancel subscription",
                "manage preferences",
                "email preferences",
                "preference center",
            )
        )
        self._keywords = tuple(
            keywords
            if keywords is not None
            else (
                "offer",
                "deal",
                "discount",
                "sale",
                "promotion",
                "limited time",
                "special",
                "exclusive",
                "free",
                "save",
                "buy now",
                "shop now",
                "order now",
                "act now",
                "don't miss out",
                "last chance",
                "expires",
                "limited offer",
                "flash sale",
                "clearance",
            )
        )
        self._domains = frozenset(
            domain.lower()
            for domain in (
                domains
                if domains is not None
                else (
                    "mailchimp.com",
                    "constantcontact.com",
                    "campaignmonitor.com",
                    "sendgrid.com",
                    "klaviyo.com",
                    "convertkit.com",
                    "mailerlite.com",
                    "aweber.com",
                    "getresponse.com",
                    "activecampaign.com",
                )
            )
        )

    def detect(self, message: CanonicalMessage) -> PromotionalVerdict:
        """Return the promotional verdict for ``message``."""
        haystack = _build_haystack(message)
        reasons: list[str] = []
        confidence = 0.0

        if any(pattern in haystack for pattern in self._unsubscribe_patterns):
            confidence += 0.8
            reasons.append("Contains unsubscribe link")

        matched = [keyword for keyword in self._keywords if keyword in haystack]
        if matched:
            confidence += min(0.6, len(matched) * 0.15)
            reasons.append(f"Marketing keywords: {', '.join(matched)}")

        _, _, domain = message.sender.email.partition("@")
        if domain and domain.lower() in self._domains:
            confidence += 0.5
            reasons.append("Marketing service domain")

        return PromotionalVerdict(
            is_promotional=confidence >= PROMOTIONAL_THRESHOLD,
            confidence=min(confidence, 1.0),
            reasons=tuple(reasons),
        )

    def is_promotional(self, message: CanonicalMessage) -> bool:
        return self.detect(message).is_promotional


def _build_haystack(message: CanonicalMessage) -> str:
    parts = [
        message.subject,
        message.body,
        message.body_text,
        message.body_html,
    ]
    return " ".join(part for part in parts if part).lower()


__all__ = ["PROMOTIONAL_THRESHOLD", "PromotionalDetector", "PromotionalVerdict"]
