"""Conversion between minute values and ``HH:MM:SS`` text."""

from __future__ import annotations

import math


def format_minutes(total_minutes: float) -> str:
    """Render a duration in minutes as ``HH:MM:SS`` rounded to whole seconds."""

    try:
        total_minutes = float(total_minutes)
    except (TypeError, ValueError):
        return "00:00:00"
    if not math.isfinite(total_minutes) or total_minutes < 0:
        return "00:00:00"
    total_seconds = round(total_minutes * 60)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _part(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_duration(text: str) -> float:
    """Parse ``H:M:S``, ``M:S`` or plain seconds into minutes.

    Parts that are not numbers count as zero.  Empty text, or text with more
    than three parts, is zero.
    """

    if not text or not text.strip():
        return 0.0
    parts = [_part(part) for part in text.strip().split(":")]
    hours = minutes = seconds = 0.0
    if len(parts) == 3:
        hours, minutes, seconds = parts
    elif len(parts) == 2:
        minutes, seconds = parts
    elif len(parts) == 1:
        (seconds,) = parts
    return hours * 60 + minutes + seconds / 60


__all__ = ["format_minutes", "parse_duration"]
