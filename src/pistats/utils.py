"""Formatting helpers and model-key handling shared by the formatters and trends."""

from __future__ import annotations

import re
from datetime import datetime, timezone

_NUMERIC = re.compile(r"^\d+$")


def split_model_key(key: str) -> tuple[str, str]:
    """Split a "model@provider" key into (model, provider).

    A purely numeric final segment is a date suffix that belongs to the model
    name (e.g. "claude-sonnet-4-5@20250929"), so the provider is "unknown".
    """
    model, sep, suffix = key.rpartition("@")
    if not sep:
        return key, "unknown"
    if _NUMERIC.match(suffix):
        return key, "unknown"
    return model, suffix


def format_num(n: float) -> str:
    """Format a number compactly: 1,234 / 12.3K / 1.2M."""
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 10_000:
        return f"{n / 1_000:.1f}K"
    if isinstance(n, float) and not n.is_integer():
        return f"{n:,.2f}"
    return f"{int(n):,}"


def format_duration(ms: float) -> str:
    """Format milliseconds as a short human-readable duration."""
    if ms < 1000:
        return "<1s"
    seconds = int(ms // 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}min"
    hours, remain = divmod(minutes, 60)
    return f"{hours}h {remain}min" if remain else f"{hours}h"


def format_relative_time(when: datetime | None, now: datetime | None = None) -> str:
    """Describe a past instant relative to now ("today", "3 days ago", ...)."""
    if when is None:
        return "never"
    if now is None:
        now = datetime.now(tz=timezone.utc)
    days = int((now - when).total_seconds() // 86400)

    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 14:
        return "1 week ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 60:
        return "1 month ago"
    return f"{days // 30} months ago"


def format_pct(value: float, total: float) -> str:
    if total == 0:
        return "0.0%"
    return f"{value / total * 100:.1f}%"


def pad_right(s: str, width: int) -> str:
    return s.ljust(width)


def pad_left(s: str, width: int) -> str:
    return s.rjust(width)


def bar(value: float, maximum: float, width: int = 30) -> str:
    """Horizontal bar of block characters, proportional to value / maximum."""
    if maximum == 0:
        return "░" * width
    filled = round(value / maximum * width)
    filled = max(0, min(width, filled))
    return "█" * filled + "░" * (width - filled)
