"""Caller-level input validation for engine entry points.

Malformed dates and unknown enum values are rejected here with
InvalidInputError; tools turn it into a user-facing message. Numeric
inputs are never rejected: calculators clamp them instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone


class InvalidInputError(ValueError):
    """Raised when a caller supplies a malformed date or an unknown enum value."""


def require_choice(value: str, allowed: Iterable[str], field_name: str) -> str:
    """Return ``value`` if it is one of ``allowed``, else raise."""
    allowed = tuple(allowed)
    if value not in allowed:
        raise InvalidInputError(
            f"Invalid {field_name} {value!r}. Expected one of: {', '.join(allowed)}."
        )
    return value


def parse_date(value: str | date, field_name: str = "date") -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise InvalidInputError(f"Invalid {field_name} {value!r}. Use YYYY-MM-DD.") from exc


def parse_timestamp(value: str | datetime, field_name: str = "timestamp") -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Naive timestamps are taken to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInputError(
                f"Invalid {field_name} {value!r}. Use ISO 8601, e.g. 2026-03-01T08:30:00Z."
            ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_utc_iso(value: datetime) -> str:
    """Canonical timestamp text used for storage and range queries."""
    return parse_timestamp(value).isoformat()
