"""JSON output formatter — converts aggregated stats to serializable documents."""

from __future__ import annotations

import json
from dataclasses import asdict

import click

from pistats.inventory import ToolAudit
from pistats.models import AggregatedStats, Period, TimeSeriesPoint, TokenUsage


def print_json(stats: AggregatedStats, command: str, show_cost: bool = False, audit: ToolAudit | None = None) -> None:
    doc = to_json_object(stats, command, show_cost)
    if audit is not None:
        doc["audit"] = audit_json(audit)
    click.echo(json.dumps(doc, indent=2))


def print_trend_json(period: Period, metric: str, bucket_size: str, series: list[TimeSeriesPoint]) -> None:
    doc = {
        "period": period_json(period),
        "metric": metric,
        "bucketSize": bucket_size,
        "series": [point_json(p) for p in series],
    }
    click.echo(json.dumps(doc, indent=2))


def period_json(period: Period) -> dict:
    return {
        "label": period.label,
        "from": period.from_.isoformat(),
        "to": period.to.isoformat(),
    }


def tokens_json(tokens: TokenUsage) -> dict:
    return {
        "input": tokens.input,
        "output": tokens.output,
        "cacheRead": tokens.cache_read,
        "cacheWrite": tokens.cache_write,
        "total": tokens.total,
    }


def point_json(point: TimeSeriesPoint) -> dict:
    doc = {
        "date": point.date.isoformat(),
        "label": point.label,
        "value": point.value,
    }
    if point.breakdown is not None:
        doc["breakdown"] = dict(point.breakdown)
    return doc


def to_json_object(stats: AggregatedStats, command: str, show_cost: bool = False) -> dict:
    """Build the JSON document for one subcommand."""
    base = {"period": period_json(stats.period)}

    if command == "summary":
        doc = {
            **base,
            "sessions": stats.total_sessions,
            "messages": {
                "total": stats.total_messages,
                "user": stats.total_user_messages,
                "assistant": stats.total_assistant_messages,
            },
            "toolCalls": stats.total_tool_calls,
            "toolErrors": stats.total_tool_errors,
            "tokens": tokens_json(stats.total_tokens),
        }
        if show_cost:
            doc["cost"] = stats.total_cost
        return doc

    if command == "tools":
        tools = [
            {
                "name": t.name,
                "calls": t.calls,
                "errors": t.errors,
                "errorRate": t.errors / t.calls if t.calls else 0,
                "sessions": len(t.session_ids),
                "sessionRate": len(t.session_ids) / stats.total_sessions if stats.total_sessions else 0,
                "lastUsed": t.last_used.isoformat() if t.last_used else None,
            }
            for t in stats.tools.values()
        ]
        tools.sort(key=lambda t: t["calls"], reverse=True)
        return {**base, "tools": tools}

    if command == "models":
        models = []
        for m in sorted(stats.models.values(), key=lambda m: m.calls, reverse=True):
            entry = {
                "model": m.model,
                "provider": m.provider,
                "calls": m.calls,
                "tokens": tokens_json(m.tokens),
            }
            if show_cost:
                entry["cost"] = m.cost
            models.append(entry)
        return {**base, "models": models}

    if command == "projects":
        projects = [{"name": name, **asdict(p)} for name, p in stats.projects.items()]
        for p in projects:
            p["toolCalls"] = p.pop("tool_calls")
        projects.sort(key=lambda p: p["sessions"], reverse=True)
        return {**base, "projects": projects}

    if command == "sessions":
        sessions = []
        for s in sorted(stats.sessions, key=lambda s: s.start_time, reverse=True):
            entry = {
                "id": s.id,
                "project": s.project,
                "startTime": s.start_time.isoformat(),
                "endTime": s.end_time.isoformat(),
                "duration": s.duration,
                "messages": s.message_count,
                "userMessages": s.user_messages,
                "assistantMessages": s.assistant_messages,
                "toolCalls": s.tool_calls,
                "toolErrors": s.tool_errors,
                "tokens": tokens_json(s.tokens),
            }
            if show_cost:
                entry["cost"] = s.cost
            sessions.append(entry)
        return {**base, "sessions": sessions}

    raise ValueError(f"Unknown command: {command!r}")


def audit_json(audit: ToolAudit) -> dict:
    def entry(tool):
        return {"name": tool.name, "extension": tool.extension, "calls": tool.calls}

    return {
        "neverUsed": [entry(t) for t in audit.never_used],
        "rarelyUsed": [entry(t) for t in audit.rarely_used],
        "byExtension": {ext: [entry(t) for t in tools] for ext, tools in audit.by_extension.items()},
    }
