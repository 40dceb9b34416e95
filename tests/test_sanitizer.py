"""Tests for the BeautifulSoup sanitizer."""

from __future__ import annotations

import pytest

from inbox_canon.content import SoupSanitizer


@pytest.fixture()
def sanitizer() -> SoupSanitizer:
    return SoupSanitizer()


def test_email_mode_keeps_layout_and_drops_scripts(sanitizer: SoupSanitizer) -> None:
    markup = (
        '<table border="1"><tr><td style="color:red" onclick="x()">Hi</td></tr></table>'
        "<script>evil()</script>"
    )

    assert sanitizer(markup, "email") == (
        '<table border="1"><tr><td style="color:red">Hi</td></tr></table>'
    )


def test_email_mode_filters_urls(sanitizer: SoupSanitizer) -> None:
    cleaned = sanitizer(
        '<a href="javascript:alert(1)">bad</a>'
        '<a href="https://example.com" target="_blank">good</a>'
        '<img src="data:image/png;base64,aGk=">',
        "email",
    )

    assert "<a>bad</a>" in cleaned
    assert 'href="https://example.com"' in cleaned
    assert 'src="data:image/png;base64,aGk="' in cleaned


def test_script_urls_with_embedded_whitespace_are_dropped(sanitizer: SoupSanitizer) -> None:
    cleaned = sanitizer(
        '<a href="java&#9;script:alert(1)">x</a><a href="java&#10;script:alert(2)">y</a>',
        "email",
    )

    assert cleaned == "<a>x</a><a>y</a>"


def test_ui_mode_unwraps_links(sanitizer: SoupSanitizer) -> None:
    cleaned = sanitizer('<div style="x"><a href="https://e.com">label</a></div>', "ui")

    assert cleaned == '<div style="x">label</div>'


def test_strict_mode_keeps_only_basic_formatting(sanitizer: SoupSanitizer) -> None:
    cleaned = sanitizer(
        '<style>p { color: red }</style><p class="x"><a href="https://e.com">link</a> '
        '<img src="a.png"></p>',
        "strict",
    )

    assert cleaned == "<p>link </p>"


def test_comments_are_removed(sanitizer: SoupSanitizer) -> None:
    assert sanitizer.sanitize("<p>a<!-- secret --></p>") == "<p>a</p>"


def test_empty_input(sanitizer: SoupSanitizer) -> None:
    assert sanitizer("", "strict") == ""


def test_unknown_mode_is_rejected(sanitizer: SoupSanitizer) -> None:
    with pytest.raises(ValueError):
        sanitizer("<p>x</p>", "lenient")  # type: ignore[arg-type]
