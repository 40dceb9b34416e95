"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from inbox_canon import cli
from inbox_canon.core.config import load_app_settings

SAMPLE_EML = b"""From: sender@example.com
To: user@example.com
Subject: CLI test
Message-ID: <cli@example.com>
Content-Type: text/plain; charset="utf-8"

Hello from the command line.
"""


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    load_app_settings.cache_clear()


def test_info_reports_configuration(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["info"]) == 0

    output = capsys.readouterr().out
    assert "Inbox Canon is ready." in output
    assert "Sanitization mode: email" in output


def test_render_json_record(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    record_path = tmp_path / "message.json"
    record_path.write_text(
        json.dumps({"id": "j1", "text": "Docs at https://example.com/a?b=1&c=2"}),
        encoding="utf-8",
    )

    assert cli.main(["render", str(record_path)]) == 0

    output = capsys.readouterr().out
    assert 'href="https://example.com/a?b=1&c=2"' in output
    assert output.startswith('<div class="email-content-wrapper">')


def test_render_eml_as_text(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    eml_path = tmp_path / "message.eml"
    eml_path.write_bytes(SAMPLE_EML)

    assert cli.main(["render", str(eml_path), "--format", "text"]) == 0

    assert capsys.readouterr().out.strip() == "Hello from the command line."


def test_render_display_format(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    eml_path = tmp_path / "message.eml"
    eml_path.write_bytes(SAMPLE_EML)

    assert cli.main(["render", str(eml_path), "--format", "display"]) == 0

    assert capsys.readouterr().out.startswith('<div class="gmail-content"')


def test_preview_command(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    eml_path = tmp_path / "message.eml"
    eml_path.write_bytes(SAMPLE_EML)

    assert cli.main(["preview", str(eml_path), "--max-length", "10"]) == 0

    assert capsys.readouterr().out.strip() == "Hello from..."


def test_render_requires_path(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["render"]) == 2
    assert "requires a message file path" in capsys.readouterr().out


def test_render_reports_unreadable_file(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    bad_path = tmp_path / "list.json"
    bad_path.write_text("[1, 2]", encoding="utf-8")

    assert cli.main(["render", str(bad_path)]) == 1
    assert "Unable to read" in capsys.readouterr().out


def test_sync_without_credentials_fails_cleanly(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("INBOX_CANON_IMAP__USERNAME", raising=False)
    monkeypatch.delenv("INBOX_CANON_IMAP__APP_PASSWORD", raising=False)

    assert cli.main(["sync"]) == 1
    assert "Sync failed: IMAP credentials are not configured" in capsys.readouterr().out
