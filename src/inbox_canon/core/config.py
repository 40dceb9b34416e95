"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field

SanitizationMode = Literal["email", "ui", "strict"]


class ImapSettings(BaseModel):
    """Settings controlling IMAP connectivity."""

    host: str = Field(default="imap.gmail.com", description="IMAP hostname")
    port: int = Field(default=993, description="IMAP port, typically 993 for SSL")
    username: str | None = Field(default=None, description="Account username")
    app_password: str | None = Field(default=None, description="Gmail app password")
    mailbox: str = Field(default="INBOX", description="Mailbox to read from")
    use_ssl: bool = Field(default=True, description="Whether to enforce SSL")


class GmailApiSettings(BaseModel):
    """Settings for the Gmail REST API transport."""

    base_url: str = Field(
        default="https://gmail.googleapis.com", description="Gmail API root URL"
    )
    user_id: str = Field(default="me", description="Mailbox owner used in API paths")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Request timeout for API calls"
    )


class ContentSettings(BaseModel):
    """Options for the standard content transformer."""

    enable_url_conversion: bool = Field(
        default=True, description="Turn bare URLs into anchors"
    )
    enable_email_linking: bool = Field(
        default=True, description="Turn email addresses into mailto anchors"
    )
    preserve_line_breaks: bool = Field(
        default=True, description="Convert line breaks into paragraphs and <br>"
    )
    sanitization_mode: SanitizationMode = Field(
        default="email", description="Sanitizer mode used for HTML content"
    )
    processing_mode: Literal["standard", "gmail-style"] = Field(
        default="standard",
        description="Also render a markup-preserving display version when gmail-style",
    )


class DisplaySettings(BaseModel):
    """Toggles for the markup-preserving display processor."""

    remove_signatures: bool = Field(default=True)
    preserve_structure: bool = Field(default=True)
    handle_quirks: bool = Field(default=True)
    process_tables: bool = Field(default=True)
    apply_styling: bool = Field(default=True)
    enable_responsive: bool = Field(default=True)
    sanitize: bool = Field(default=True)


class AttachmentSettings(BaseModel):
    """Attachment reconciliation and lazy-fetch behaviour."""

    reconcile_enabled: bool = Field(
        default=True,
        description="Re-fetch and re-parse cloud API messages reporting no attachments",
    )
    single_flight: bool = Field(
        default=False,
        description="Share one in-flight fetch between concurrent requests for a key",
    )


class StandardizerSettings(BaseModel):
    """Settings for mapping raw records into canonical messages."""

    id_strategy: Literal["time", "hash"] = Field(
        default="time",
        description="How to synthesise ids for records carrying neither id nor messageId",
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )
    library_level: str = Field(
        default="WARNING", description="Level for third-party HTTP client loggers"
    )


class SyncSettings(BaseModel):
    """Settings controlling fetch cadence and bounds."""

    batch_size: int = Field(
        default=50, ge=1, description="Messages fetched per IMAP batch"
    )
    max_messages: int | None = Field(
        default=None, description="Hard cap for messages processed in a cycle"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    imap: ImapSettings = Field(default_factory=ImapSettings)
    gmail: GmailApiSettings = Field(default_factory=GmailApiSettings)
    content: ContentSettings = Field(default_factory=ContentSettings)
    display: DisplaySettings = Field(default_factory=DisplaySettings)
    attachments: AttachmentSettings = Field(default_factory=AttachmentSettings)
    standardizer: StandardizerSettings = Field(default_factory=StandardizerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)


ENV_PREFIX = "INBOX_CANON_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values: dict[str, str] = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "AttachmentSettings",
    "ContentSettings",
    "DisplaySettings",
    "GmailApiSettings",
    "ImapSettings",
    "LoggingSettings",
    "SanitizationMode",
    "StandardizerSettings",
    "SyncSettings",
    "load_app_settings",
]
