"""Terminal trend renderer with block-character bar charts."""

from __future__ import annotations

from dataclasses import dataclass

import click

from pistats.models import TimeSeriesPoint
from pistats.utils import bar, format_num, pad_left, pad_right

COLORS = ("cyan", "yellow", "green", "magenta", "blue", "red")
BAR_WIDTH = 30
LABEL_WIDTH = 10


@dataclass
class TrendSummary:
    total: float
    avg: float
    peak_value: float
    peak_label: str


def summarize(series: list[TimeSeriesPoint]) -> TrendSummary:
    """Total, average and peak bucket of a series."""
    if not series:
        return TrendSummary(total=0, avg=0, peak_value=0, peak_label="")
    total = sum(p.value for p in series)
    peak = series[0]
    for p in series[1:]:
        if p.value > peak.value:
            peak = p
    return TrendSummary(total=total, avg=total / len(series), peak_value=peak.value, peak_label=peak.label)


def format_trend_line(point: TimeSeriesPoint, max_value: float, width: int = BAR_WIDTH) -> str:
    if point.value == 0:
        empty = click.style("░" * width, dim=True)
        return f"  {pad_right(point.label, LABEL_WIDTH)}  {empty}  {click.style(pad_left('—', 8), dim=True)}"
    return (
        f"  {pad_right(point.label, LABEL_WIDTH)}  {bar(point.value, max_value, width)}  "
        f"{pad_left(format_num(point.value), 8)}"
    )


def format_breakdown_line(
    point: TimeSeriesPoint,
    max_value: float,
    keys: list[str],
    width: int = BAR_WIDTH,
) -> str:
    """A stacked bar: one colored segment per breakdown category, in legend order."""
    if not point.breakdown or point.value == 0:
        return format_trend_line(point, max_value, width)

    segments = []
    remaining = width
    for i, key in enumerate(keys):
        value = point.breakdown.get(key, 0)
        if value == 0 or remaining == 0:
            continue
        seg = min(remaining, max(1, round(value / max_value * width)))
        segments.append(click.style("█" * seg, fg=COLORS[i % len(COLORS)]))
        remaining -= seg
    if remaining > 0:
        segments.append(click.style("░" * remaining, dim=True))

    return f"  {pad_right(point.label, LABEL_WIDTH)}  {''.join(segments)}  {pad_left(format_num(point.value), 8)}"


def legend_keys(series: list[TimeSeriesPoint]) -> list[str]:
    """Breakdown categories ordered by their total across the series."""
    totals: dict[str, float] = {}
    for point in series:
        for key, value in (point.breakdown or {}).items():
            totals[key] = totals.get(key, 0) + value
    return [key for key, _ in sorted(totals.items(), key=lambda item: item[1], reverse=True)]


def print_trend(series: list[TimeSeriesPoint], title: str) -> None:
    """Print a complete trend chart with totals and, when broken down, a legend."""
    click.echo()
    click.echo("  " + click.style(title, bold=True))
    click.echo()

    if not series:
        click.echo("  No data for this period.\n")
        return

    max_value = max(p.value for p in series)
    keys = legend_keys(series)

    for point in series:
        if keys:
            click.echo(format_breakdown_line(point, max_value, keys))
        else:
            click.echo(format_trend_line(point, max_value))

    summary = summarize(series)
    blank = " " * BAR_WIDTH
    click.echo(f"  {' ' * LABEL_WIDTH}  {'─' * (BAR_WIDTH + 10)}")
    click.echo(f"  {pad_right('Total', LABEL_WIDTH)}  {blank}  {pad_left(format_num(summary.total), 8)}")
    click.echo(f"  {pad_right('Avg', LABEL_WIDTH)}  {blank}  {pad_left(format_num(round(summary.avg)), 8)}")
    click.echo(
        f"  {pad_right('Peak', LABEL_WIDTH)}  {blank}  "
        f"{pad_left(format_num(summary.peak_value), 8)}  ({summary.peak_label})"
    )

    if keys:
        legend = "  ".join(
            f"{click.style('■', fg=COLORS[i % len(COLORS)])} {key}" for i, key in enumerate(keys)
        )
        click.echo(f"\n  Legend: {legend}")

    click.echo()
