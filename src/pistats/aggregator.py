"""Stats aggregation engine — folds filtered SessionStats into AggregatedStats."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from datetime import datetime

from pistats.filters import resolve_range
from pistats.models import (
    AggregatedStats,
    FilterOptions,
    ModelStats,
    Period,
    ProjectStats,
    SessionStats,
    TokenUsage,
    ToolStats,
)
from pistats.utils import split_model_key


def aggregate(
    sessions: list[SessionStats],
    opts: FilterOptions,
    now: datetime | None = None,
) -> AggregatedStats:
    """Aggregate session stats into one summary.

    Every step is a sum, a set union or a max, so the result does not depend
    on the order of ``sessions``.
    """
    stats = AggregatedStats(period=resolve_range(opts, now), sessions=list(sessions))
    for session in sessions:
        _add_session(stats, session)
    return stats


def merge_aggregates(a: AggregatedStats, b: AggregatedStats) -> AggregatedStats:
    """Combine two aggregates into a new one without touching either input."""
    merged = AggregatedStats(
        period=Period(
            from_=min(a.period.from_, b.period.from_),
            to=max(a.period.to, b.period.to),
            label=a.period.label,
        ),
        sessions=a.sessions + b.sessions,
        total_sessions=a.total_sessions + b.total_sessions,
        total_messages=a.total_messages + b.total_messages,
        total_user_messages=a.total_user_messages + b.total_user_messages,
        total_assistant_messages=a.total_assistant_messages + b.total_assistant_messages,
        total_tool_calls=a.total_tool_calls + b.total_tool_calls,
        total_tool_results=a.total_tool_results + b.total_tool_results,
        total_tool_errors=a.total_tool_errors + b.total_tool_errors,
        total_tokens=_add_tokens(a.total_tokens, b.total_tokens),
        total_cost=a.total_cost + b.total_cost,
        tools=copy.deepcopy(a.tools),
        models=copy.deepcopy(a.models),
        projects=copy.deepcopy(a.projects),
    )

    for name, tool in b.tools.items():
        existing = merged.tools.get(name)
        if existing is None:
            merged.tools[name] = copy.deepcopy(tool)
            continue
        existing.calls += tool.calls
        existing.errors += tool.errors
        existing.session_ids |= tool.session_ids
        existing.last_used = _latest(existing.last_used, tool.last_used)

    for key, model in b.models.items():
        existing = merged.models.get(key)
        if existing is None:
            merged.models[key] = copy.deepcopy(model)
            continue
        existing.calls += model.calls
        existing.tokens = _add_tokens(existing.tokens, model.tokens)
        existing.cost += model.cost

    for name, project in b.projects.items():
        existing = merged.projects.setdefault(name, ProjectStats())
        existing.sessions += project.sessions
        existing.messages += project.messages
        existing.tool_calls += project.tool_calls
        existing.tokens += project.tokens

    return merged


def top_by(mapping: Mapping[str, object], attr: str) -> tuple[str, object] | None:
    """Return the (key, value) whose ``attr`` is strictly greatest.

    Ties keep the first entry in iteration order. Returns None when empty.
    """
    top: tuple[str, object] | None = None
    for name, value in mapping.items():
        if top is None or getattr(value, attr) > getattr(top[1], attr):
            top = (name, value)
    return top


def _add_session(stats: AggregatedStats, session: SessionStats) -> None:
    stats.total_sessions += 1
    stats.total_messages += session.message_count
    stats.total_user_messages += session.user_messages
    stats.total_assistant_messages += session.assistant_messages
    stats.total_tool_calls += session.tool_calls
    stats.total_tool_results += session.tool_results
    stats.total_tool_errors += session.tool_errors
    stats.total_tokens = _add_tokens(stats.total_tokens, session.tokens)
    stats.total_cost += session.cost

    for name, usage in session.tools.items():
        tool = stats.tools.get(name)
        if tool is None:
            tool = stats.tools[name] = ToolStats(name=name)
        tool.calls += usage.calls
        tool.errors += usage.errors
        tool.session_ids.add(session.id)
        tool.last_used = _latest(tool.last_used, session.end_time)

    # Split for display here, but stay keyed on the exact session-reported key
    for key, usage in session.models.items():
        model = stats.models.get(key)
        if model is None:
            name, provider = split_model_key(key)
            model = stats.models[key] = ModelStats(model=name, provider=provider)
        model.calls += usage.calls
        model.tokens.total += usage.tokens
        model.cost += usage.cost

    project = stats.projects.setdefault(session.project, ProjectStats())
    project.sessions += 1
    project.messages += session.message_count
    project.tool_calls += session.tool_calls
    project.tokens += session.tokens.total


def _add_tokens(a: TokenUsage, b: TokenUsage) -> TokenUsage:
    return TokenUsage(
        input=a.input + b.input,
        output=a.output + b.output,
        cache_read=a.cache_read + b.cache_read,
        cache_write=a.cache_write + b.cache_write,
        total=a.total + b.total,
    )


def _latest(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)

