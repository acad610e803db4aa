from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """UTC ISO-8601 string with millisecond precision and a trailing Z.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return to_iso(utcnow())


def parse_timestamp(value: Any, *, default: Optional[datetime] = None) -> str:
    """Parse a client supplied timestamp into our canonical ISO form.

    Accepts ISO-8601 strings (with or without offset, 'Z' allowed), datetimes and
    numbers (epoch milliseconds, like a browser Date). Empty values fall back to
    `default` (or now). Raises ValueError when the value cannot be parsed.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return to_iso(default or utcnow())

    if isinstance(value, datetime):
        try:
            return to_iso(value)
        except OverflowError as e:
            # Offset pushes the instant outside the representable UTC range.
            raise ValueError(f"invalid timestamp: {value!r}") from e

    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")

    if isinstance(value, (int, float)):
        try:
            return to_iso(datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc))
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"invalid timestamp: {value!r}") from e

    if isinstance(value, str):
        s = value.strip()
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            return to_iso(datetime.fromisoformat(s))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"invalid timestamp: {value!r}") from e

    raise ValueError(f"invalid timestamp: {value!r}")
