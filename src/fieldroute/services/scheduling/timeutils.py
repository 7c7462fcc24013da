"""Clock-time helpers; all schedule arithmetic is done in minutes from midnight."""

from __future__ import annotations

import math


def time_to_minutes(value: str) -> int:
    """Parse ``HH:MM`` (or ``HH:MM:SS`` as stored by Postgres) into minutes."""
    parts = value.strip().split(":")
    if not parts or not parts[0]:
        raise ValueError(f"Invalid clock time '{value}'")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    except ValueError as exc:
        raise ValueError(f"Invalid clock time '{value}'") from exc
    if hours < 0 or not 0 <= minutes < 60:
        raise ValueError(f"Invalid clock time '{value}'")
    return hours * 60 + minutes


def minutes_to_time(total_minutes: float) -> str:
    total = int(round(total_minutes))
    return f"{total // 60:02d}:{total % 60:02d}"


def ceil_to_5(minutes: float) -> int:
    """Round travel minutes up to the next 5-minute increment."""
    return int(math.ceil(minutes / 5) * 5)
