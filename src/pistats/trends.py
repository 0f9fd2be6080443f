"""Time-series bucketing engine for trends.

Groups sessions into UTC calendar buckets, optionally broken down by a
second dimension with global top-N + "other" collapsing.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pistats.models import BreakdownOptions, SessionStats, TimeSeriesPoint
from pistats.utils import split_model_key

BUCKET_SIZES = ("hourly", "daily", "weekly", "monthly")
METRICS = ("tokens", "sessions", "tool-calls", "messages")
DIMENSIONS = ("tool", "model", "provider", "project")

OTHER = "other"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_PERIOD_BUCKETS = {
    "today": "hourly",
    "week": "daily",
    "month": "daily",
    "quarter": "weekly",
    "year": "monthly",
    "all": "monthly",
}


def bucket_size_for_period(period: str) -> str:
    """Pick a bucket granularity that suits the period."""
    try:
        return _PERIOD_BUCKETS[period]
    except KeyError:
        raise ValueError(f"Unknown period: {period!r}") from None


def bucket_key(when: datetime, size: str) -> tuple[int, ...]:
    """Identity of the bucket containing ``when``, from its UTC calendar fields."""
    d = when.astimezone(timezone.utc)
    if size == "hourly":
        return (d.year, d.month, d.day, d.hour)
    if size == "daily":
        return (d.year, d.month, d.day)
    if size == "weekly":
        iso = d.isocalendar()
        return (iso[0], iso[1])
    if size == "monthly":
        return (d.year, d.month)
    raise ValueError(f"Unknown bucket size: {size!r}")


def bucket_start(when: datetime, size: str) -> datetime:
    """Start instant (UTC) of the bucket containing ``when``."""
    d = when.astimezone(timezone.utc)
    if size == "hourly":
        return d.replace(minute=0, second=0, microsecond=0)
    if size == "daily":
        return d.replace(hour=0, minute=0, second=0, microsecond=0)
    if size == "weekly":
        midnight = d.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight - timedelta(days=midnight.weekday())
    if size == "monthly":
        return d.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    raise ValueError(f"Unknown bucket size: {size!r}")


def bucket_label(start: datetime, size: str) -> str:
    """Human-readable label for a bucket start: "14:00", "Feb 10", "W07", "Feb 2026"."""
    d = start.astimezone(timezone.utc)
    if size == "hourly":
        return f"{d.hour:02d}:00"
    if size == "daily":
        return f"{_MONTHS[d.month - 1]} {d.day:02d}"
    if size == "weekly":
        return f"W{d.isocalendar()[1]:02d}"
    if size == "monthly":
        return f"{_MONTHS[d.month - 1]} {d.year}"
    raise ValueError(f"Unknown bucket size: {size!r}")


def metric_value(session: SessionStats, metric: str) -> int:
    if metric == "tokens":
        return session.tokens.total
    if metric == "sessions":
        return 1
    if metric == "tool-calls":
        return session.tool_calls
    if metric == "messages":
        return session.message_count
    raise ValueError(f"Unknown metric: {metric!r}")


def breakdown_values(session: SessionStats, metric: str, dimension: str) -> dict[str, float]:
    """One session's contribution to each category of a breakdown dimension."""
    result: dict[str, float] = {}

    if dimension == "tool":
        for name, usage in session.tools.items():
            result[name] = usage.calls
    elif dimension == "model":
        for key, usage in session.models.items():
            model, _ = split_model_key(key)
            value = usage.tokens if metric == "tokens" else usage.calls
            result[model] = result.get(model, 0) + value
    elif dimension == "provider":
        for key, usage in session.models.items():
            _, provider = split_model_key(key)
            value = usage.tokens if metric == "tokens" else usage.calls
            result[provider] = result.get(provider, 0) + value
    elif dimension == "project":
        result[session.project] = 1 if metric == "sessions" else metric_value(session, metric)
    else:
        raise ValueError(f"Unknown breakdown dimension: {dimension!r}")

    return result


def build_time_series(
    sessions: list[SessionStats],
    metric: str,
    size: str,
    breakdown: BreakdownOptions | None = None,
) -> list[TimeSeriesPoint]:
    """Bucket sessions by start time and sum the metric per bucket.

    Each session counts wholly toward the bucket of its start_time. With a
    breakdown, the top N categories are chosen by their total across all
    buckets, so a category is either shown everywhere or folded into
    "other" everywhere.
    """
    if not sessions:
        return []

    buckets: dict[tuple[int, ...], TimeSeriesPoint] = {}
    for session in sessions:
        key = bucket_key(session.start_time, size)
        point = buckets.get(key)
        if point is None:
            start = bucket_start(session.start_time, size)
            point = buckets[key] = TimeSeriesPoint(
                date=start,
                label=bucket_label(start, size),
                value=0,
                breakdown={} if breakdown else None,
            )
        point.value += metric_value(session, metric)

        if breakdown:
            for name, value in breakdown_values(session, metric, breakdown.by).items():
                point.breakdown[name] = point.breakdown.get(name, 0) + value

    series = sorted(buckets.values(), key=lambda p: p.date)

    if breakdown:
        _collapse_to_top(series, breakdown.top)

    return series


def _collapse_to_top(series: list[TimeSeriesPoint], top: int) -> None:
    totals: dict[str, float] = {}
    for point in series:
        for name, value in point.breakdown.items():
            totals[name] = totals.get(name, 0) + value

    # sorted() is stable, so equal totals keep first-seen order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    keep = {name for name, _ in ranked[:max(0, top)]}

    for point in series:
        collapsed: dict[str, float] = {}
        other = 0
        for name, value in point.breakdown.items():
            if name in keep:
                collapsed[name] = value
            else:
                other += value
        if other > 0:
            collapsed[OTHER] = collapsed.get(OTHER, 0) + other
        point.breakdown = collapsed
