"""Tests for promotional mail detection."""

from __future__ import annotations

from inbox_canon.content import PromotionalDetector
from inbox_canon.ingestion import standardize


def test_unsubscribe_language_is_strongest_signal() -> None:
    message = standardize(
        {"id": "p1", "subject": "Weekly digest", "html": "<p>Click to unsubscribe</p>"}
    )

    verdict = PromotionalDetector().detect(message)

    assert verdict.is_promotional is True
    assert verdict.confidence == 0.8
    assert "Contains unsubscribe link" in verdict.reasons


def test_marketing_keywords_add_up() -> None:
    message = standardize(
        {"id": "p2", "subject": "Flash sale", "text": "Big discount, shop now"}
    )

    verdict = PromotionalDetector().detect(message)

    assert verdict.is_promotional is True
    assert verdict.confidence == 0.6


def test_single_keyword_is_not_enough() -> None:
    message = standardize(
        {"id": "p3", "subject": "Lunch", "text": "Are you free tomorrow?"}
    )

    assert PromotionalDetector().is_promotional(message) is False


def test_bulk_mail_domains() -> None:
    message = standardize({"id": "p4", "from": "news@mailchimp.com", "text": "Hello"})

    verdict = PromotionalDetector().detect(message)

    assert verdict.is_promotional is True
    assert "Marketing service domain" in verdict.reasons


def test_confidence_is_capped() -> None:
    message = standardize(
        {
            "id": "p5",
            "from": "deals@sendgrid.com",
            "text": "Exclusive offer! Limited time sale. Unsubscribe here.",
        }
    )

    assert PromotionalDetector().detect(message).confidence == 1.0


def test_custom_signal_lists() -> None:
    detector = PromotionalDetector(unsubscribe_patterns=(), keywords=("invoice",), domains=())
    message = standardize({"id": "p6", "text": "Click unsubscribe"})

    assert detector.is_promotional(message) is False
