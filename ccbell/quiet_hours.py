"""Quiet-hours window arithmetic.

A window is a pair of "HH:MM" wall-clock bounds. When start > end the window
wraps midnight (22:00-07:00). start == end is treated as "quiet hours off",
not as a 24-hour window.
"""

from datetime import datetime
from typing import Optional

MINUTES_PER_DAY = 24 * 60


def parse_time_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight (0-1439)."""
    parts = value.split(":")
    if len(parts) != 2:
        raise ValueError(f"invalid time format: {value!r} (expected HH:MM)")

    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError as e:
        raise ValueError(f"invalid time {value!r}: {e}") from e

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"time out of range: {value!r}")

    return hours * 60 + minutes


def is_in_quiet_hours(window, now: Optional[datetime] = None) -> bool:
    """Return True if *now* falls inside the quiet-hours window.

    *window* is any object with ``start``/``end`` string attributes, or None.
    Missing bounds, unparseable bounds and start == end all mean "not quiet";
    a bad window must never stop a notification from being evaluated.
    """
    if window is None or not window.start or not window.end:
        return False

    try:
        start = parse_time_to_minutes(window.start)
        end = parse_time_to_minutes(window.end)
    except ValueError:
        return False

    if start == end:
        return False

    if now is None:
        now = datetime.now()
    current = now.hour * 60 + now.minute

    if start > end:
        # Spans midnight
        return current >= start or current < end

    return start <= current < end


def quiet_hours_status(window, now: Optional[datetime] = None) -> str:
    """Human-readable quiet-hours status for the status command."""
    if window is None or not window.start or not window.end:
        return "not configured"

    if is_in_quiet_hours(window, now):
        return "active (currently in quiet period)"

    return "configured but not active"
