"""SVG chart generators.

Pure functions returning inline SVG markup (as markupsafe.Markup, so the
report template embeds them without re-escaping).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta

from markupsafe import Markup, escape

from pistats.utils import format_num

COLORS = (
    "#6366f1", "#22c55e", "#eab308", "#ef4444", "#3b82f6",
    "#f97316", "#8b5cf6", "#ec4899", "#14b8a6", "#64748b",
)

HEAT_COLORS = (
    "var(--heat-0, #e0e0e0)",
    "var(--heat-1, #6366f133)",
    "var(--heat-2, #6366f166)",
    "var(--heat-3, #6366f199)",
    "var(--heat-4, #6366f1)",
)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass
class ChartItem:
    label: str
    value: float
    color: str | None = None


def _no_data(width: float, height: float) -> Markup:
    return Markup(
        f'<svg viewBox="0 0 {width} {height}" width="100%" height="{height}">'
        f'<text x="{width / 2}" y="{height / 2 + 4}" text-anchor="middle" '
        f'fill="var(--fg2)" font-size="12">No data</text></svg>'
    )


# ---------------------------------------------------------------------------
# Horizontal bar chart
# ---------------------------------------------------------------------------


def bar_chart(items: list[ChartItem], width: int = 600, bar_height: int = 18, label_width: float | None = None) -> Markup:
    if not items:
        return _no_data(width, 40)

    if label_width is None:
        label_width = min(150, max(80, *(len(i.label) * 7.5 for i in items)))
    bar_area = width - label_width - 80
    gap = 6
    max_value = max(i.value for i in items)
    height = len(items) * (bar_height + gap) + 10

    parts = [f'<svg viewBox="0 0 {width} {height}" width="100%" height="{height}">']
    for idx, item in enumerate(items):
        y = idx * (bar_height + gap) + 5
        bar_w = max(2, item.value / max_value * bar_area) if max_value > 0 else 0
        color = item.color or COLORS[idx % len(COLORS)]
        text_y = y + bar_height * 0.72
        parts.append(
            f'<text x="{label_width - 8}" y="{text_y}" text-anchor="end" '
            f'fill="var(--fg)" font-size="12">{escape(item.label)}</text>'
        )
        parts.append(
            f'<rect x="{label_width}" y="{y}" width="{bar_w:.1f}" height="{bar_height}" '
            f'rx="3" fill="{color}" opacity="0.8"/>'
        )
        parts.append(
            f'<text x="{label_width + bar_w + 8:.1f}" y="{text_y}" fill="var(--fg2)" '
            f'font-size="11">{format_num(item.value)}</text>'
        )
    parts.append("</svg>")
    return Markup("\n".join(parts))


# ---------------------------------------------------------------------------
# Line / area chart
# ---------------------------------------------------------------------------


def nice_step(max_value: float, target_ticks: int) -> float:
    """A round tick step (1, 2, 5 or 10 times a power of ten)."""
    rough = max_value / target_ticks
    mag = 10 ** math.floor(math.log10(rough))
    residual = rough / mag
    if residual <= 1.5:
        nice = 1
    elif residual <= 3:
        nice = 2
    elif residual <= 7:
        nice = 5
    else:
        nice = 10
    return nice * mag


def line_chart(points: list[ChartItem], width: int = 600, height: int = 200, fill: bool = True, color: str = COLORS[0]) -> Markup:
    if not points:
        return _no_data(width, height)

    left, right, top, bottom = 55, 20, 25, 30
    chart_w = width - left - right
    chart_h = height - top - bottom
    max_value = max(max(p.value for p in points), 1)
    step = nice_step(max_value, 4)
    y_max = math.ceil(max_value / step) * step

    def px(i: int) -> float:
        if len(points) == 1:
            return left + chart_w / 2
        return left + i / (len(points) - 1) * chart_w

    def py(v: float) -> float:
        return top + chart_h - v / y_max * chart_h

    parts = [f'<svg viewBox="0 0 {width} {height}" width="100%" height="{height}">']

    tick = 0.0
    while tick <= y_max:
        y = py(tick)
        dash = "0" if tick == 0 else "4"
        parts.append(
            f'<line x1="{left}" y1="{y:.1f}" x2="{width - right}" y2="{y:.1f}" '
            f'stroke="var(--border)" stroke-width="0.5" stroke-dasharray="{dash}"/>'
        )
        parts.append(
            f'<text x="{left - 8}" y="{y + 4:.1f}" text-anchor="end" fill="var(--fg2)" '
            f'font-size="10">{format_num(tick)}</text>'
        )
        tick += step

    coords = " ".join(f"{px(i):.1f},{py(p.value):.1f}" for i, p in enumerate(points))
    if len(points) > 1:
        if fill:
            baseline = f"{px(len(points) - 1):.1f},{py(0):.1f} {px(0):.1f},{py(0):.1f}"
            parts.append(f'<polygon points="{coords} {baseline}" fill="{color}" opacity="0.1"/>')
        parts.append(
            f'<polyline points="{coords}" fill="none" stroke="{color}" '
            f'stroke-width="2.5" stroke-linejoin="round"/>'
        )

    for i, p in enumerate(points):
        x, y = px(i), py(p.value)
        parts.append(f'<circle cx="{x:.1f}" cy="{y:.1f}" r="4" fill="{color}"/>')
        parts.append(
            f'<text x="{x:.1f}" y="{py(0) + 18:.1f}" text-anchor="middle" fill="var(--fg2)" '
            f'font-size="10">{escape(p.label)}</text>'
        )
        parts.append(
            f'<text x="{x:.1f}" y="{y - 8:.1f}" text-anchor="middle" fill="var(--fg)" '
            f'font-size="10" font-weight="600">{format_num(p.value)}</text>'
        )

    parts.append("</svg>")
    return Markup("\n".join(parts))


# ---------------------------------------------------------------------------
# Donut chart
# ---------------------------------------------------------------------------


def donut_chart(
    segments: list[ChartItem],
    size: int = 180,
    center_label: str | None = None,
    center_sub: str | None = None,
    stroke_width: int = 24,
) -> Markup:
    if not segments:
        return _no_data(size, size)

    cx = cy = size / 2
    r = (size - stroke_width) / 2 - 4
    circumference = 2 * math.pi * r
    total = sum(s.value for s in segments)

    parts = [f'<svg viewBox="0 0 {size} {size}" width="{size}" height="{size}">']
    offset = 0.0
    for idx, seg in enumerate(segments):
        length = seg.value / total * circumference if total > 0 else 0
        color = seg.color or COLORS[idx % len(COLORS)]
        parts.append(
            f'<circle cx="{cx}" cy="{cy}" r="{r}" fill="none" stroke="{color}" '
            f'stroke-width="{stroke_width}" stroke-dasharray="{length:.2f} {circumference - length:.2f}" '
            f'stroke-dashoffset="{-offset:.2f}" transform="rotate(-90 {cx} {cy})"/>'
        )
        offset += length

    if center_label:
        parts.append(
            f'<text x="{cx}" y="{cy - 2}" text-anchor="middle" fill="var(--fg)" '
            f'font-size="14" font-weight="700">{escape(center_label)}</text>'
        )
    if center_sub:
        parts.append(
            f'<text x="{cx}" y="{cy + 14}" text-anchor="middle" fill="var(--fg2)" '
            f'font-size="10">{escape(center_sub)}</text>'
        )
    parts.append("</svg>")
    return Markup("\n".join(parts))


# ---------------------------------------------------------------------------
# Activity heatmap (GitHub-style, Sunday-first columns)
# ---------------------------------------------------------------------------


def heat_level(value: float, maximum: float) -> int:
    if value == 0 or maximum == 0:
        return 0
    ratio = value / maximum
    if ratio <= 0.25:
        return 1
    if ratio <= 0.5:
        return 2
    if ratio <= 0.75:
        return 3
    return 4


def heatmap(days: dict[date, float], cell_size: int = 12, gap: int = 2) -> Markup:
    if not days:
        return _no_data(200, 40)

    step = cell_size + gap
    day_labels = ("", "Mon", "", "Wed", "", "Fri", "")
    max_value = max(days.values())

    first, last = min(days), max(days)
    # Sunday on or before the first day, Saturday on or after the last
    start = first - timedelta(days=(first.weekday() + 1) % 7)
    end = last + timedelta(days=6 - (last.weekday() + 1) % 7)
    total_weeks = ((end - start).days + 1) // 7

    label_offset, top_pad = 30, 20
    width = label_offset + total_weeks * step + 120
    height = top_pad + 7 * step + 20

    parts = [f'<svg viewBox="0 0 {width} {height}" width="100%" height="{height}">']
    for d, label in enumerate(day_labels):
        if label:
            parts.append(
                f'<text x="{label_offset - 4}" y="{top_pad + d * step + cell_size * 0.8:.1f}" '
                f'text-anchor="end" fill="var(--fg2)" font-size="9">{label}</text>'
            )

    prev_month = None
    cursor = start
    for w in range(total_weeks):
        for d in range(7):
            x = label_offset + w * step
            y = top_pad + d * step
            level = heat_level(days.get(cursor, 0), max_value)
            parts.append(
                f'<rect x="{x}" y="{y}" width="{cell_size}" height="{cell_size}" rx="2" '
                f'fill="{HEAT_COLORS[level]}"><title>{cursor.isoformat()}: {days.get(cursor, 0)}</title></rect>'
            )
            if d == 0 and cursor.month != prev_month:
                parts.append(
                    f'<text x="{x}" y="{top_pad - 6}" fill="var(--fg2)" '
                    f'font-size="9">{_MONTHS[cursor.month - 1]}</text>'
                )
                prev_month = cursor.month
            cursor += timedelta(days=1)

    legend_x = width - 110
    legend_y = height - 16
    parts.append(f'<text x="{legend_x}" y="{legend_y + 1}" fill="var(--fg2)" font-size="9">Less</text>')
    for i, color in enumerate(HEAT_COLORS):
        parts.append(
            f'<rect x="{legend_x + 28 + i * (cell_size + 2)}" y="{legend_y - 9}" '
            f'width="{cell_size}" height="{cell_size}" rx="2" fill="{color}"/>'
        )
    parts.append(
        f'<text x="{legend_x + 28 + 5 * (cell_size + 2) + 4}" y="{legend_y + 1}" '
        f'fill="var(--fg2)" font-size="9">More</text>'
    )
    parts.append("</svg>")
    return Markup("\n".join(parts))
