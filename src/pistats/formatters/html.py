"""HTML dashboard generator — renders a single self-contained report page.

The page carries inline CSS, SVG charts pre-rendered for the default period,
and the data for every period as embedded JSON so the period selector can
redraw without a server.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from pistats.aggregator import aggregate
from pistats.filters import PERIOD_NAMES, filter_sessions, local_now
from pistats.formatters import svg
from pistats.inventory import classify_tools
from pistats.models import FilterOptions, SessionStats
from pistats.trends import bucket_size_for_period, build_time_series
from pistats.utils import format_num

TEMPLATES_DIR = Path(__file__).parent / "templates"

PERIOD_TITLES = {
    "today": "Today",
    "week": "This Week",
    "month": "This Month",
    "quarter": "This Quarter",
    "year": "This Year",
    "all": "All Time",
}

TOP_PROJECTS = 15


def build_dashboard_data(sessions: list[SessionStats], now: datetime | None = None) -> dict:
    """Aggregate sessions once per period into a JSON-serializable payload.

    Returns:
        {"periods": {name: {...}}, "heatmap": [{date, value}], "generatedAt", "hasCost"}
    """
    if now is None:
        now = local_now()

    periods = {}
    for name in PERIOD_NAMES:
        opts = FilterOptions(period=name)
        filtered = filter_sessions(sessions, opts, now)
        stats = aggregate(filtered, opts, now)
        series = build_time_series(filtered, "tokens", bucket_size_for_period(name))
        _, extension = classify_tools(stats.tools)

        # Session share is relative to sessions that used any extension tool
        ext_sessions: set[str] = set()
        for tool in extension:
            ext_sessions |= tool.session_ids
        denominator = len(ext_sessions) or stats.total_sessions

        models = sorted(stats.models.values(), key=lambda m: m.tokens.total, reverse=True)
        projects = sorted(stats.projects.items(), key=lambda item: item[1].sessions, reverse=True)
        total = stats.total_sessions

        periods[name] = {
            "period": {"label": stats.period.label},
            "summary": {
                "sessions": total,
                "messages": stats.total_messages,
                "toolCalls": stats.total_tool_calls,
                "tokens": stats.total_tokens.total,
                "cost": stats.total_cost,
                "avgSessionMessages": round(stats.total_messages / total) if total else 0,
                "avgSessionTokens": round(stats.total_tokens.total / total) if total else 0,
            },
            "tools": [
                {
                    "label": t.name,
                    "value": t.calls,
                    "errors": t.errors,
                    "sessPercent": len(t.session_ids) / denominator * 100 if denominator else 0,
                }
                for t in extension
            ],
            "models": [
                {
                    "label": m.model,
                    "provider": m.provider,
                    "calls": m.calls,
                    "tokens": m.tokens.total,
                    "cost": m.cost,
                    "color": svg.COLORS[i % len(svg.COLORS)],
                }
                for i, m in enumerate(models)
            ],
            "projects": [
                {"label": project, "sessions": p.sessions, "messages": p.messages}
                for project, p in projects[:TOP_PROJECTS]
            ],
            "trends": [{"label": p.label, "value": p.value} for p in series],
        }

    return {
        "periods": periods,
        "heatmap": [{"date": d.isoformat(), "value": v} for d, v in sorted(sessions_per_day(sessions).items())],
        "generatedAt": now.astimezone(timezone.utc).isoformat(),
        "hasCost": any(s.cost > 0 for s in sessions),
    }


def sessions_per_day(sessions: list[SessionStats]) -> dict[date, int]:
    """Count sessions by the UTC calendar day they started on."""
    days: dict[date, int] = {}
    for s in sessions:
        day = s.start_time.astimezone(timezone.utc).date()
        days[day] = days.get(day, 0) + 1
    return days


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["num"] = format_num
    return env


def generate_html(
    sessions: list[SessionStats],
    default_period: str = "week",
    now: datetime | None = None,
) -> str:
    """Render the full dashboard page."""
    if now is None:
        now = local_now()
    data = build_dashboard_data(sessions, now)
    if default_period not in data["periods"]:
        default_period = "all"
    pd = data["periods"][default_period]

    colors = svg.COLORS
    charts = {
        "trend": svg.line_chart([svg.ChartItem(p["label"], p["value"]) for p in pd["trends"]]),
        "tools": svg.bar_chart(
            [svg.ChartItem(t["label"], t["value"], colors[i % len(colors)]) for i, t in enumerate(pd["tools"][:12])],
            label_width=130,
        ),
        "donut": svg.donut_chart(
            [svg.ChartItem(m["label"], m["tokens"], m["color"]) for m in pd["models"]],
            center_label=format_num(pd["summary"]["tokens"]),
            center_sub="tokens",
        ),
        "projects": svg.bar_chart(
            [svg.ChartItem(p["label"], p["sessions"], colors[i % len(colors)]) for i, p in enumerate(pd["projects"][:10])],
            label_width=130,
        ),
        "heatmap": svg.heatmap(sessions_per_day(sessions)),
    }

    max_calls = pd["tools"][0]["value"] if pd["tools"] else 0
    template = _environment().get_template("report.html")
    return template.render(
        data=data,
        pd=pd,
        charts=charts,
        colors=list(colors),
        max_calls=max_calls,
        default_period=default_period,
        period_titles=PERIOD_TITLES,
        generated=now.strftime("%b %d, %Y"),
    )
