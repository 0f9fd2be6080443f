"""Terminal table formatter — fixed-width columns written with click.echo."""

from __future__ import annotations

from datetime import datetime

import click

from pistats.aggregator import top_by
from pistats.inventory import ToolAudit
from pistats.models import AggregatedStats
from pistats.utils import (
    format_duration,
    format_num,
    format_pct,
    format_relative_time,
    pad_left,
    pad_right,
)

RULE = "─"


def _title(text: str) -> None:
    click.echo()
    click.echo("  " + click.style(text, bold=True))
    click.echo()


def _header(line: str) -> None:
    click.echo(click.style(line, dim=True))
    click.echo(f"  {RULE * (len(line) - 2)}")


def print_summary(stats: AggregatedStats, show_cost: bool = False) -> None:
    """Print the summary overview."""
    _title(f"pistats — {stats.period.label}")
    click.echo(f"  {RULE * 60}")

    tokens = stats.total_tokens
    click.echo(f"  Sessions          {pad_left(format_num(stats.total_sessions), 10)}")
    click.echo(
        f"  Messages          {pad_left(format_num(stats.total_messages), 10)}"
        f"    (user: {format_num(stats.total_user_messages)}, "
        f"assistant: {format_num(stats.total_assistant_messages)})"
    )
    click.echo(
        f"  Tool calls        {pad_left(format_num(stats.total_tool_calls), 10)}"
        f"    (errors: {format_num(stats.total_tool_errors)}, "
        f"rate: {format_pct(stats.total_tool_errors, stats.total_tool_calls)})"
    )
    click.echo(
        f"  Tokens            {pad_left(format_num(tokens.total), 10)}"
        f"    (in: {format_num(tokens.input)}, out: {format_num(tokens.output)}, "
        f"cache: {format_num(tokens.cache_read)})"
    )
    if show_cost:
        click.echo(f"  Cost              {pad_left(f'${stats.total_cost:.2f}', 10)}")

    if stats.total_sessions > 0:
        avg_messages = round(stats.total_messages / stats.total_sessions)
        avg_tools = round(stats.total_tool_calls / stats.total_sessions)
        avg_duration = sum(s.duration for s in stats.sessions) / stats.total_sessions
        click.echo()
        click.echo(
            f"  Avg/session       messages: {avg_messages}, tools: {avg_tools}, "
            f"duration: {format_duration(avg_duration)}"
        )

    top_tool = top_by(stats.tools, "calls")
    top_model = top_by(stats.models, "calls")
    top_project = top_by(stats.projects, "sessions")
    if top_tool:
        click.echo(f"  Most used tool    {top_tool[0]} ({format_num(top_tool[1].calls)} calls)")
    if top_model:
        click.echo(f"  Most used model   {top_model[1].model} ({format_num(top_model[1].calls)} calls)")
    if top_project:
        click.echo(f"  Most active proj  {top_project[0]} ({top_project[1].sessions} sessions)")

    click.echo()


def print_tools(stats: AggregatedStats, limit: int = 20, now: datetime | None = None) -> None:
    """Print the tool usage breakdown table."""
    all_tools = sorted(stats.tools.values(), key=lambda t: t.calls, reverse=True)
    tools = all_tools[:limit]
    showing = f" (showing {limit} of {len(all_tools)})" if len(all_tools) > limit else ""
    _title(f"Tool Usage — {stats.period.label}{showing}")

    if not tools:
        click.echo("  No tool calls in this period.\n")
        return

    name_width = max(4, *(len(t.name) for t in tools))
    _header(
        f"  {pad_right('Tool', name_width)}  {pad_left('Calls', 7)}  {pad_left('Errors', 7)}  "
        f"{pad_left('Error%', 7)}  {pad_left('Sessions', 8)}  {pad_left('Sess%', 6)}  Last Used"
    )

    for tool in tools:
        sessions = len(tool.session_ids)
        errors = pad_left(format_num(tool.errors), 7)
        if tool.errors:
            errors = click.style(errors, fg="red")
        click.echo(
            f"  {pad_right(tool.name, name_width)}  {pad_left(format_num(tool.calls), 7)}  "
            f"{errors}  {pad_left(format_pct(tool.errors, tool.calls), 7)}  "
            f"{pad_left(str(sessions), 8)}  {pad_left(format_pct(sessions, stats.total_sessions), 6)}  "
            f"{format_relative_time(tool.last_used, now)}"
        )

    click.echo()


def print_tool_audit(audit: ToolAudit) -> None:
    """Print never-used and rarely-used registered tools, then per-extension totals."""
    _title("Tool Audit")

    if audit.never_used:
        click.echo("  Never used:")
        for tool in audit.never_used:
            click.echo(f"    {click.style(tool.name, fg='yellow')}  ({tool.extension})")
        click.echo()

    if audit.rarely_used:
        click.echo("  Rarely used (< 5 calls):")
        for tool in audit.rarely_used:
            click.echo(f"    {tool.name}  ({tool.extension}, {tool.calls} calls)")
        click.echo()

    if not audit.by_extension:
        click.echo("  No registered tools found.\n")
        return

    ext_width = max(9, *(len(ext) for ext in audit.by_extension))
    _header(f"  {pad_right('Extension', ext_width)}  {pad_left('Tools', 5)}  {pad_left('Used', 5)}  {pad_left('Calls', 7)}")
    for ext, tools in audit.by_extension.items():
        used = sum(1 for t in tools if t.calls > 0)
        calls = sum(t.calls for t in tools)
        click.echo(
            f"  {pad_right(ext, ext_width)}  {pad_left(str(len(tools)), 5)}  "
            f"{pad_left(str(used), 5)}  {pad_left(format_num(calls), 7)}"
        )
    click.echo()


def print_models(stats: AggregatedStats, limit: int = 20, show_cost: bool = False) -> None:
    """Print the models breakdown table."""
    _title(f"Models — {stats.period.label}")

    models = sorted(stats.models.values(), key=lambda m: m.calls, reverse=True)[:limit]
    if not models:
        click.echo("  No model usage in this period.\n")
        return

    name_width = max(5, *(len(m.model) for m in models))
    prov_width = max(8, *(len(m.provider) for m in models))

    header = (
        f"  {pad_right('Model', name_width)}  {pad_right('Provider', prov_width)}  "
        f"{pad_left('Calls', 7)}  {pad_left('Tokens', 10)}"
    )
    if show_cost:
        header += f"  {pad_left('Cost', 8)}"
    _header(header)

    for m in models:
        line = (
            f"  {pad_right(m.model, name_width)}  {pad_right(m.provider, prov_width)}  "
            f"{pad_left(format_num(m.calls), 7)}  {pad_left(format_num(m.tokens.total), 10)}"
        )
        if show_cost:
            line += f"  {pad_left(f'${m.cost:.2f}', 8)}"
        click.echo(line)

    click.echo()


def print_projects(stats: AggregatedStats, limit: int = 20) -> None:
    """Print the projects breakdown table."""
    _title(f"Projects — {stats.period.label}")

    projects = sorted(stats.projects.items(), key=lambda item: item[1].sessions, reverse=True)[:limit]
    if not projects:
        click.echo("  No sessions in this period.\n")
        return

    name_width = max(7, *(len(name) for name, _ in projects))
    _header(
        f"  {pad_right('Project', name_width)}  {pad_left('Sessions', 8)}  "
        f"{pad_left('Messages', 8)}  {pad_left('Tools', 7)}  {pad_left('Tokens', 10)}"
    )
    for name, p in projects:
        click.echo(
            f"  {pad_right(name, name_width)}  {pad_left(str(p.sessions), 8)}  "
            f"{pad_left(format_num(p.messages), 8)}  {pad_left(format_num(p.tool_calls), 7)}  "
            f"{pad_left(format_num(p.tokens), 10)}"
        )

    click.echo()


def print_sessions(stats: AggregatedStats, limit: int = 20, show_cost: bool = False) -> None:
    """Print session details, most recent first."""
    all_sessions = sorted(stats.sessions, key=lambda s: s.start_time, reverse=True)
    sessions = all_sessions[:limit]
    showing = f" (showing {limit} of {len(all_sessions)})" if len(all_sessions) > limit else ""
    _title(f"Sessions — {stats.period.label}{showing}")

    if not sessions:
        click.echo("  No sessions in this period.\n")
        return

    proj_width = max(7, *(len(s.project) for s in sessions))
    header = (
        f"  {pad_right('Date', 16)}  {pad_right('Project', proj_width)}  {pad_left('Msgs', 6)}  "
        f"{pad_left('Tools', 6)}  {pad_left('Tokens', 8)}  {pad_left('Duration', 10)}"
    )
    if show_cost:
        header += f"  {pad_left('Cost', 8)}"
    _header(header)

    for s in sessions:
        date = s.start_time.astimezone().strftime("%Y-%m-%d %H:%M")
        line = (
            f"  {pad_right(date, 16)}  {pad_right(s.project, proj_width)}  "
            f"{pad_left(str(s.message_count), 6)}  {pad_left(str(s.tool_calls), 6)}  "
            f"{pad_left(format_num(s.tokens.total), 8)}  {pad_left(format_duration(s.duration), 10)}"
        )
        if show_cost:
            line += f"  {pad_left(f'${s.cost:.2f}', 8)}"
        click.echo(line)

    click.echo()
