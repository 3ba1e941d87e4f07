# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for programwatch.

All timestamps are timezone-aware UTC. Session and assessment dates are plain
calendar dates; detectors compare them against "now" through
start_of_day_utc() so that naive/aware mixing never happens.

Components that need the current time accept a Clock (a zero-argument
callable returning an aware datetime) so tests can pin time without waiting.

Usage:
    from programwatch.utils.datetime import utc_now

    now = utc_now()
"""

from collections.abc import Callable
from datetime import date, datetime, time, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None. Naive values are assumed UTC.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def start_of_day_utc(day: date) -> datetime:
    """Midnight UTC at the start of the given calendar date."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as ISO 8601 string.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 string, or None if dt is None.
    """
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
