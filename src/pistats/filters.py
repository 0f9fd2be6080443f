"""Period and project filtering for session stats.

All period boundaries are computed from a caller-supplied "now" so results
are reproducible. Midnights are taken in now's own timezone.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pistats.models import FilterOptions, Period, SessionStats

PERIOD_NAMES = ("today", "week", "month", "quarter", "year", "all")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def local_now() -> datetime:
    """The current instant as an aware datetime in the local timezone."""
    return datetime.now().astimezone()


def resolve_period(period: str, now: datetime | None = None) -> Period:
    """Compute the date range and label for a named period."""
    if now is None:
        now = local_now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == "today":
        from_ = midnight
        label = f"Today ({_fmt_date(from_)})"
    elif period == "week":
        # ISO week, Monday start
        from_ = midnight - timedelta(days=now.weekday())
        label = f"This week ({_fmt_date(from_)} – {_fmt_date(now)})"
    elif period == "month":
        from_ = midnight.replace(day=1)
        label = now.strftime("%B %Y")
    elif period == "quarter":
        quarter_start = (now.month - 1) // 3 * 3 + 1
        from_ = midnight.replace(month=quarter_start, day=1)
        label = f"Q{(quarter_start - 1) // 3 + 1} {now.year}"
    elif period == "year":
        from_ = midnight.replace(month=1, day=1)
        label = str(now.year)
    elif period == "all":
        from_ = EPOCH
        label = "All time"
    else:
        raise ValueError(f"Unknown period: {period!r}")

    return Period(from_=from_, to=now, label=label)


def resolve_range(opts: FilterOptions, now: datetime | None = None) -> Period:
    """Period for a filter. Explicit from/to bounds override the period name."""
    if now is None:
        now = local_now()
    if opts.from_ is not None or opts.to is not None:
        return Period(
            from_=opts.from_ if opts.from_ is not None else EPOCH,
            to=opts.to if opts.to is not None else now,
            label=filter_label(opts, now),
        )
    return resolve_period(opts.period, now)


def filter_sessions(
    sessions: list[SessionStats],
    opts: FilterOptions,
    now: datetime | None = None,
) -> list[SessionStats]:
    """Keep sessions that started within the range and match the project filters."""
    period = resolve_range(opts, now)
    include = opts.project.lower() if opts.project else None
    excludes = [e.lower() for e in opts.exclude_projects if e]

    results = []
    for s in sessions:
        if s.start_time < period.from_ or s.start_time > period.to:
            continue
        project = s.project.lower()
        if include is not None and include not in project:
            continue
        if any(e in project for e in excludes):
            continue
        results.append(s)
    return results


def filter_label(opts: FilterOptions, now: datetime | None = None) -> str:
    """Display label for the current filter."""
    if opts.from_ is not None or opts.to is not None:
        start = _fmt_date(opts.from_) if opts.from_ is not None else "beginning"
        end = _fmt_date(opts.to) if opts.to is not None else "now"
        return f"{start} – {end}"
    return resolve_period(opts.period, now).label


def _fmt_date(d: datetime) -> str:
    return d.strftime("%Y-%m-%d")
