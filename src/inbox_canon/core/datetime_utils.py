"""Datetime helpers shared across the application."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

__all__ = [
    "ensure_utc",
    "from_epoch_millis",
    "parse_source_date",
    "serialize_datetime",
    "to_epoch_millis",
]

LOGGER = logging.getLogger(__name__)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC, treating naive values as already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_epoch_millis(value: datetime) -> int:
    """Return milliseconds since the epoch for ``value``."""
    return int(ensure_utc(value).timestamp() * 1000)


def from_epoch_millis(millis: int) -> datetime:
    """Build a UTC datetime from epoch milliseconds."""
    return datetime.fromtimestamp(millis / 1000, tz=UTC)


def serialize_datetime(value: datetime) -> str:
    """Serialise ``value`` as ISO 8601 in UTC with millisecond precision."""
    iso = ensure_utc(value).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z")


def parse_source_date(value: Any) -> datetime | None:
    """Interpret a date from an arbitrary source record.

    Accepts ``datetime`` objects, epoch milliseconds (as numbers or digit
    strings, the cloud API's ``internalDate`` shape), ISO 8601 strings and
    RFC 2822 header values. Returns ``None`` for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _to_utc_safe(value)
    if isinstance(value, (int, float)):
        return _from_millis_safe(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.isdigit():
        return _from_millis_safe(int(text))

    try:
        return _to_utc_safe(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _to_utc_safe(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError, OverflowError):
        LOGGER.debug("Unparseable source date %r", text)
        return None


def _to_utc_safe(value: datetime) -> datetime | None:
    # Offsets can push boundary dates outside the representable range.
    try:
        return ensure_utc(value)
    except OverflowError:
        LOGGER.debug("Source date %s is out of range", value)
        return None


def _from_millis_safe(millis: float) -> datetime | None:
    try:
        return from_epoch_millis(int(millis))
    except (OverflowError, OSError, ValueError):
        return None
