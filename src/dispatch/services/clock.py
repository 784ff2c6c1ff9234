"""Wall-clock helpers for "HH:MM" strings used throughout scheduling."""

from __future__ import annotations

import re

_CLOCK_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def is_valid_clock(value: object) -> bool:
    return isinstance(value, str) and bool(_CLOCK_PATTERN.match(value.strip()))


def parse_clock(value: str, default: str | None = None) -> float:
    """Convert "HH:MM" into minutes after midnight.

    Malformed values fall back to ``default`` when given, otherwise a
    ``ValueError`` is raised.
    """
    if is_valid_clock(value):
        hours, minutes = value.strip().split(":")
        return int(hours) * 60 + int(minutes)
    if default is not None:
        return parse_clock(default)
    raise ValueError(f"Invalid clock value '{value}', expected HH:MM.")


def format_clock(minutes: float) -> str:
    total = int(round(minutes))
    hours = (total // 60) % 24
    return f"{hours:02d}:{total % 60:02d}"
