"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from inbox_canon.core.config import load_app_settings


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure each test sees a fresh settings instance."""

    load_app_settings.cache_clear()


def test_defaults_loaded_without_env_file() -> None:
    """Default values should be returned when no overrides are present."""

    settings = load_app_settings(include_environment=False)
    assert settings.imap.host == "imap.gmail.com"
    assert settings.content.sanitization_mode == "email"
    assert settings.content.processing_mode == "standard"
    assert settings.standardizer.id_strategy == "time"
    assert settings.attachments.single_flight is False
    assert settings.attachments.reconcile_enabled is True
    assert settings.sync.batch_size == 50


def test_env_file_overrides(tmp_path: Path) -> None:
    """Values defined in an env file should override defaults."""

    env_file = tmp_path / "test.env"
    env_file.write_text(
        "INBOX_CANON_IMAP__HOST=imap.example.com\n"
        "INBOX_CANON_CONTENT__SANITIZATION_MODE=strict\n"
        "INBOX_CANON_ATTACHMENTS__SINGLE_FLIGHT=true\n"
        "INBOX_CANON_DISPLAY__REMOVE_SIGNATURES=false\n",
        encoding="utf-8",
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    assert settings.imap.host == "imap.example.com"
    assert settings.content.sanitization_mode == "strict"
    assert settings.attachments.single_flight is True
    assert settings.display.remove_signatures is False


def test_environment_takes_precedence_over_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("INBOX_CANON_STANDARDIZER__ID_STRATEGY=time\n", encoding="utf-8")
    monkeypatch.setenv("INBOX_CANON_STANDARDIZER__ID_STRATEGY", "hash")

    settings = load_app_settings(env_file=env_file)
    assert settings.standardizer.id_strategy == "hash"


def test_invalid_sanitization_mode_is_rejected(tmp_path: Path) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("INBOX_CANON_CONTENT__SANITIZATION_MODE=lenient\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_app_settings(env_file=env_file, include_environment=False)
