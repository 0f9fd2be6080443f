"""Tests for the aggregation engine."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from conftest import make_session

from pistats.aggregator import aggregate, merge_aggregates, top_by
from pistats.models import FilterOptions, ProjectStats
from pistats.parser import parse_session_stats

UTC = timezone.utc
NOW = datetime(2026, 2, 11, 15, 0, tzinfo=UTC)
ALL = FilterOptions(period="all")


@pytest.fixture
def sessions():
    return [
        make_session("a", datetime(2026, 2, 9, 9, tzinfo=UTC), project="alpha", tokens=100,
                     tool_calls={"bash": 3, "read": 1}, models={"gpt-5@openai": 100}),
        make_session("b", datetime(2026, 2, 10, 9, tzinfo=UTC), project="beta", tokens=200,
                     tool_calls={"bash": 1}, models={"claude-sonnet-4-5@anthropic": 200}, cost=0.5),
        make_session("c", datetime(2026, 2, 11, 9, tzinfo=UTC), project="alpha", tokens=300,
                     tool_calls={"edit": 2}, models={"gpt-5@openai": 300}, messages=6),
    ]


def without_session_list(stats):
    stats.sessions = sorted(stats.sessions, key=lambda s: s.id)
    return stats


# ---------------------------------------------------------------------------
# aggregate
# ---------------------------------------------------------------------------


class TestAggregate:
    def test_totals(self, sessions):
        stats = aggregate(sessions, ALL, NOW)
        assert stats.total_sessions == 3
        assert stats.total_messages == 14
        assert stats.total_user_messages == 2 + 2 + 3
        assert stats.total_tool_calls == 7
        assert stats.total_tokens.total == 600
        assert stats.total_tokens.input == 600
        assert stats.total_cost == pytest.approx(0.5)

    def test_period(self, sessions):
        stats = aggregate(sessions, ALL, NOW)
        assert stats.period.label == "All time"
        assert stats.period.to == NOW

    def test_tools(self, sessions):
        stats = aggregate(sessions, ALL, NOW)
        bash = stats.tools["bash"]
        assert bash.calls == 4
        assert bash.session_ids == {"a", "b"}
        assert bash.last_used == datetime(2026, 2, 10, 9, tzinfo=UTC)
        assert stats.tools["edit"].session_ids == {"c"}

    def test_models_split_key(self, sessions):
        stats = aggregate(sessions, ALL, NOW)
        gpt = stats.models["gpt-5@openai"]
        assert gpt.model == "gpt-5"
        assert gpt.provider == "openai"
        assert gpt.calls == 2
        assert gpt.tokens.total == 400

    def test_projects(self, sessions):
        stats = aggregate(sessions, ALL, NOW)
        assert stats.projects["alpha"] == ProjectStats(sessions=2, messages=10, tool_calls=6, tokens=400)
        assert stats.projects["beta"].sessions == 1

    def test_empty(self):
        stats = aggregate([], ALL, NOW)
        assert stats.total_sessions == 0
        assert stats.tools == {}
        assert stats.total_tokens.total == 0

    def test_order_independent(self, sessions):
        forward = aggregate(sessions, ALL, NOW)
        backward = aggregate(list(reversed(sessions)), ALL, NOW)
        assert without_session_list(forward) == without_session_list(backward)

    def test_tool_errors(self, errors_jsonl, home):
        stats = aggregate([parse_session_stats(errors_jsonl)], ALL, NOW)
        assert stats.total_tool_errors == 2
        assert stats.total_tool_results == 4
        assert stats.tools["read"].errors == 1

    def test_does_not_filter(self, sessions):
        stats = aggregate(sessions, FilterOptions(period="today"), NOW)
        assert stats.total_sessions == 3


# ---------------------------------------------------------------------------
# merge_aggregates
# ---------------------------------------------------------------------------


class TestMergeAggregates:
    def test_merge_equals_aggregate_of_union(self, sessions):
        a = aggregate(sessions[:1], ALL, NOW)
        b = aggregate(sessions[1:], ALL, NOW)
        merged = merge_aggregates(a, b)
        assert without_session_list(merged) == without_session_list(aggregate(sessions, ALL, NOW))

    def test_associative(self, sessions):
        a, b, c = (aggregate([s], ALL, NOW) for s in sessions)
        left = merge_aggregates(merge_aggregates(a, b), c)
        right = merge_aggregates(a, merge_aggregates(b, c))
        assert without_session_list(left) == without_session_list(right)

    def test_inputs_untouched(self, sessions):
        a = aggregate(sessions[:1], ALL, NOW)
        b = aggregate(sessions[1:], ALL, NOW)
        calls_before = a.tools["bash"].calls
        merge_aggregates(a, b)
        assert a.tools["bash"].calls == calls_before
        assert a.tools["bash"].session_ids == {"a"}

    def test_period_spans_both(self):
        week = aggregate([], FilterOptions(period="week"), NOW)
        year = aggregate([], FilterOptions(period="year"), NOW)
        merged = merge_aggregates(week, year)
        assert merged.period.from_ == year.period.from_
        assert merged.period.label == week.period.label


# ---------------------------------------------------------------------------
# top_by
# ---------------------------------------------------------------------------


class TestTopBy:
    def test_highest(self, sessions):
        stats = aggregate(sessions, ALL, NOW)
        name, tool = top_by(stats.tools, "calls")
        assert name == "bash"
        assert tool.calls == 4

    def test_ties_keep_first(self):
        projects = {"first": ProjectStats(sessions=2), "second": ProjectStats(sessions=2)}
        assert top_by(projects, "sessions")[0] == "first"

    def test_empty(self):
        assert top_by({}, "calls") is None
