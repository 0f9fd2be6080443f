"""Tests for the table, JSON, trend, SVG and HTML formatters."""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone

import pytest
from conftest import make_session

from pistats.aggregator import aggregate
from pistats.formatters import json_output, svg, table
from pistats.formatters.html import build_dashboard_data, generate_html, sessions_per_day
from pistats.formatters.trends import legend_keys, print_trend, summarize
from pistats.inventory import RegisteredTool, build_tool_audit
from pistats.models import FilterOptions, TimeSeriesPoint

UTC = timezone.utc
NOW = datetime(2026, 2, 11, 15, 0, tzinfo=UTC)
ALL = FilterOptions(period="all")


@pytest.fixture
def sessions():
    return [
        make_session("a", datetime(2026, 2, 10, 9, tzinfo=UTC), project="alpha", tokens=1200,
                     tool_calls={"bash": 3, "web_search": 2}, models={"gpt-5@openai": 1200}),
        make_session("b", datetime(2026, 2, 11, 9, tzinfo=UTC), project="beta", tokens=800,
                     tool_calls={"read": 1}, models={"claude-sonnet-4-5@anthropic": 800}, cost=0.25),
        make_session("c", datetime(2025, 11, 3, 9, tzinfo=UTC), project="<script>", tokens=50),
    ]


@pytest.fixture
def stats(sessions):
    return aggregate(sessions, ALL, NOW)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestJsonOutput:
    def test_summary(self, stats):
        doc = json_output.to_json_object(stats, "summary")
        assert doc["sessions"] == 3
        assert doc["messages"] == {"total": 12, "user": 6, "assistant": 6}
        assert doc["tokens"]["total"] == 2050
        assert doc["period"]["label"] == "All time"
        assert "cost" not in doc

    def test_summary_with_cost(self, stats):
        assert json_output.to_json_object(stats, "summary", show_cost=True)["cost"] == pytest.approx(0.25)

    def test_tools_sorted_by_calls(self, stats):
        tools = json_output.to_json_object(stats, "tools")["tools"]
        assert [t["name"] for t in tools] == ["bash", "web_search", "read"]
        assert tools[0]["sessions"] == 1
        assert tools[0]["lastUsed"] == "2026-02-10T09:00:00+00:00"

    def test_models(self, stats):
        models = json_output.to_json_object(stats, "models")["models"]
        assert {m["model"] for m in models} == {"gpt-5", "claude-sonnet-4-5"}
        assert "cost" not in models[0]

    def test_projects(self, stats):
        projects = json_output.to_json_object(stats, "projects")["projects"]
        alpha = next(p for p in projects if p["name"] == "alpha")
        assert alpha == {"name": "alpha", "sessions": 1, "messages": 4, "toolCalls": 5, "tokens": 1200}

    def test_sessions_newest_first(self, stats):
        sessions = json_output.to_json_object(stats, "sessions")["sessions"]
        assert [s["id"] for s in sessions] == ["b", "a", "c"]

    def test_unknown_command(self, stats):
        with pytest.raises(ValueError):
            json_output.to_json_object(stats, "costs")

    def test_print_json_with_audit(self, stats, capsys):
        audit = build_tool_audit([RegisteredTool("ls", "built-in")], stats.tools)
        json_output.print_json(stats, "tools", audit=audit)
        doc = json.loads(capsys.readouterr().out)
        assert doc["audit"]["neverUsed"] == [{"name": "ls", "extension": "built-in", "calls": 0}]

    def test_trend_json(self, stats, capsys):
        series = [TimeSeriesPoint(date=datetime(2026, 2, 10, tzinfo=UTC), label="Feb 10", value=5, breakdown={"bash": 5})]
        json_output.print_trend_json(stats.period, "tool-calls", "daily", series)
        doc = json.loads(capsys.readouterr().out)
        assert doc["bucketSize"] == "daily"
        assert doc["series"] == [
            {"date": "2026-02-10T00:00:00+00:00", "label": "Feb 10", "value": 5, "breakdown": {"bash": 5}}
        ]


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class TestTables:
    def test_summary(self, stats, capsys):
        table.print_summary(stats)
        out = capsys.readouterr().out
        assert "All time" in out
        assert "Sessions" in out
        assert "Cost" not in out
        assert "Most used tool    bash (3 calls)" in out

    def test_summary_cost(self, stats, capsys):
        table.print_summary(stats, show_cost=True)
        assert "$0.25" in capsys.readouterr().out

    def test_tools_limit(self, stats, capsys):
        table.print_tools(stats, limit=1, now=NOW)
        out = capsys.readouterr().out
        assert "showing 1 of 3" in out
        assert "bash" in out
        assert "web_search" not in out

    def test_empty_tables(self, capsys):
        empty = aggregate([], ALL, NOW)
        table.print_tools(empty)
        table.print_models(empty)
        table.print_projects(empty)
        table.print_sessions(empty)
        out = capsys.readouterr().out
        assert "No tool calls in this period." in out
        assert "No model usage in this period." in out
        assert out.count("No sessions in this period.") == 2

    def test_models_and_projects(self, stats, capsys):
        table.print_models(stats, show_cost=True)
        table.print_projects(stats)
        out = capsys.readouterr().out
        assert "claude-sonnet-4-5" in out
        assert "anthropic" in out
        assert "alpha" in out

    def test_tool_audit(self, stats, capsys):
        audit = build_tool_audit(
            [RegisteredTool("bash", "built-in"), RegisteredTool("ls", "built-in"), RegisteredTool("web_search", "search")],
            stats.tools,
        )
        table.print_tool_audit(audit)
        out = capsys.readouterr().out
        assert "Never used:" in out
        assert "ls" in out
        assert "Rarely used" in out


# ---------------------------------------------------------------------------
# Terminal trends
# ---------------------------------------------------------------------------


class TestTrendRenderer:
    SERIES = [
        TimeSeriesPoint(date=datetime(2026, 2, 9, tzinfo=UTC), label="Feb 09", value=10, breakdown={"a": 4, "b": 6}),
        TimeSeriesPoint(date=datetime(2026, 2, 10, tzinfo=UTC), label="Feb 10", value=30, breakdown={"a": 30}),
        TimeSeriesPoint(date=datetime(2026, 2, 11, tzinfo=UTC), label="Feb 11", value=20, breakdown={"b": 20}),
    ]

    def test_summarize(self):
        summary = summarize(self.SERIES)
        assert summary.total == 60
        assert summary.avg == 20
        assert summary.peak_label == "Feb 10"

    def test_summarize_empty(self):
        assert summarize([]).total == 0

    def test_legend_ordered_by_total(self):
        assert legend_keys(self.SERIES) == ["a", "b"]

    def test_print(self, capsys):
        print_trend(self.SERIES, "Tokens")
        out = capsys.readouterr().out
        assert "Feb 10" in out
        assert "Peak" in out
        assert "Legend:" in out

    def test_print_empty(self, capsys):
        print_trend([], "Tokens")
        assert "No data for this period." in capsys.readouterr().out


# ---------------------------------------------------------------------------
# SVG
# ---------------------------------------------------------------------------


class TestSvg:
    def test_nice_step(self):
        assert svg.nice_step(100, 4) == 20
        assert svg.nice_step(1000, 4) == 200
        assert svg.nice_step(7, 4) == 2

    @pytest.mark.parametrize("value, level", [(0, 0), (1, 1), (5, 2), (7, 3), (10, 4)])
    def test_heat_level(self, value, level):
        assert svg.heat_level(value, 10) == level

    def test_empty_charts_say_no_data(self):
        assert "No data" in svg.bar_chart([])
        assert "No data" in svg.line_chart([])
        assert "No data" in svg.donut_chart([])
        assert "No data" in svg.heatmap({})

    def test_bar_chart_escapes_labels(self):
        out = svg.bar_chart([svg.ChartItem("<b>", 3)])
        assert "&lt;b&gt;" in out
        assert "<b>" not in out

    def test_line_chart_single_point(self):
        out = svg.line_chart([svg.ChartItem("Feb 10", 5)])
        assert "<polyline" not in out
        assert out.count("<circle") == 1

    def test_donut_segments(self):
        out = svg.donut_chart([svg.ChartItem("a", 1), svg.ChartItem("b", 3)], center_label="4")
        assert out.count("<circle") == 2
        assert ">4</text>" in out

    def test_heatmap_whole_weeks(self):
        # Wednesday to the following Monday spans two Sunday-first weeks
        out = svg.heatmap({date(2026, 2, 11): 1, date(2026, 2, 16): 2})
        assert len(re.findall(r"<rect [^>]*><title>", out)) == 14
        assert "2026-02-16: 2" in out


# ---------------------------------------------------------------------------
# HTML dashboard
# ---------------------------------------------------------------------------


class TestDashboard:
    def test_all_periods_present(self, sessions):
        data = build_dashboard_data(sessions, NOW)
        assert list(data["periods"]) == ["today", "week", "month", "quarter", "year", "all"]
        assert data["periods"]["all"]["summary"]["sessions"] == 3
        assert data["periods"]["today"]["summary"]["sessions"] == 1

    def test_summary_averages(self, sessions):
        summary = build_dashboard_data(sessions, NOW)["periods"]["all"]["summary"]
        assert summary["avgSessionMessages"] == 4
        assert summary["avgSessionTokens"] == 683

    def test_only_extension_tools(self, sessions):
        tools = build_dashboard_data(sessions, NOW)["periods"]["all"]["tools"]
        assert [t["label"] for t in tools] == ["web_search"]
        assert tools[0]["sessPercent"] == 100

    def test_models_colored_by_rank(self, sessions):
        models = build_dashboard_data(sessions, NOW)["periods"]["all"]["models"]
        assert [m["label"] for m in models] == ["gpt-5", "claude-sonnet-4-5"]
        assert models[0]["color"] == svg.COLORS[0]

    def test_heatmap_and_cost_flag(self, sessions):
        data = build_dashboard_data(sessions, NOW)
        assert data["hasCost"] is True
        assert data["heatmap"][0] == {"date": "2025-11-03", "value": 1}
        assert sessions_per_day(sessions)[date(2026, 2, 10)] == 1

    def test_serializable(self, sessions):
        json.dumps(build_dashboard_data(sessions, NOW))

    def test_generate_html(self, sessions):
        page = generate_html(sessions, default_period="all", now=NOW)
        assert page.startswith("<!DOCTYPE html>")
        assert '<option value="all" selected>' in page
        assert "const PISTATS_DATA = " in page
        assert 'id="cost-card"' in page
        assert "<svg" in page

    def test_labels_escaped(self, sessions):
        page = generate_html(sessions, default_period="all", now=NOW)
        assert "&lt;script&gt;" in page
        # Embedded JSON escapes markup too
        assert '"\\u003cscript\\u003e"' in page

    def test_no_cost_card_without_cost(self, sessions):
        for s in sessions:
            s.cost = 0.0
        page = generate_html(sessions, now=NOW)
        assert 'id="cost-card"' not in page

    def test_empty(self):
        page = generate_html([], now=NOW)
        assert "No data" in page
