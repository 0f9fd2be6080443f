"""CLI entrypoint — pistats summary, tools, models, projects, sessions, trends, report."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import click

from pistats.aggregator import aggregate
from pistats.cache import StatsCache
from pistats.config import ConfigError, StatsConfig, load_config
from pistats.filters import PERIOD_NAMES, filter_sessions
from pistats.formatters import json_output, table
from pistats.formatters.html import generate_html
from pistats.formatters.trends import print_trend
from pistats.inventory import build_tool_audit, discover_registered_tools
from pistats.models import AggregatedStats, BreakdownOptions, FilterOptions, SessionStats
from pistats.parser import DiscoveryError, load_sessions
from pistats.trends import BUCKET_SIZES, DIMENSIONS, METRICS, bucket_size_for_period, build_time_series

logger = logging.getLogger(__name__)

DATE = click.DateTime(formats=["%Y-%m-%d"])

_QUERY_OPTIONS = [
    click.option("--period", type=click.Choice(PERIOD_NAMES), default=None, help="Time period (default: week)."),
    click.option("--from", "from_", type=DATE, default=None, help="Start date, YYYY-MM-DD (local)."),
    click.option("--to", type=DATE, default=None, help="End date, YYYY-MM-DD (local, inclusive)."),
    click.option("--project", default=None, help="Only projects whose name contains this."),
    click.option(
        "--exclude-project",
        "exclude_project",
        multiple=True,
        help="Skip projects whose name contains this. Repeatable or comma-separated.",
    ),
    click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table", help="Output format."),
    click.option("--limit", type=click.IntRange(min=1), default=None, help="Maximum rows to show."),
    click.option("--sessions-dir", type=click.Path(path_type=Path), default=None, help="Session logs directory."),
    click.option("--cache-dir", type=click.Path(path_type=Path), default=None, help="Stats cache directory."),
    click.option(
        "--extensions-dir", type=click.Path(path_type=Path), default=None, help="Installed extensions directory."
    ),
    click.option("--no-cache", is_flag=True, help="Re-parse every session file."),
    click.option("--show-cost", is_flag=True, help="Include cost columns."),
]


def query_options(f):
    """Attach the shared filtering and output options to a command."""
    for option in reversed(_QUERY_OPTIONS):
        f = option(f)
    return f


@dataclass
class Query:
    """Resolved options for one invocation: CLI flags over config values."""

    config: StatsConfig
    opts: FilterOptions
    fmt: str
    limit: int
    sessions_dir: Path
    cache_dir: Path
    extensions_dir: Path
    use_cache: bool
    show_cost: bool

    @classmethod
    def from_options(cls, config: StatsConfig, options: dict) -> Query:
        from_ = options["from_"]
        to = options["to"]
        excludes = [
            part.strip()
            for value in options["exclude_project"]
            for part in value.split(",")
            if part.strip()
        ]
        return cls(
            config=config,
            opts=FilterOptions(
                period=options["period"] or config.period,
                from_=from_.astimezone() if from_ is not None else None,
                to=_end_of_day(to) if to is not None else None,
                project=options["project"],
                exclude_projects=excludes,
            ),
            fmt=options["fmt"],
            limit=options["limit"] or config.limit,
            sessions_dir=options["sessions_dir"] or config.sessions_dir,
            cache_dir=options["cache_dir"] or config.cache_dir,
            extensions_dir=options["extensions_dir"] or config.extensions_dir,
            use_cache=config.use_cache and not options["no_cache"],
            show_cost=options["show_cost"] or config.show_cost,
        )

    def load(self) -> list[SessionStats]:
        """All sessions under the sessions directory, unfiltered."""
        cache = StatsCache(self.cache_dir) if self.use_cache else None
        try:
            sessions = load_sessions(self.sessions_dir, cache)
        except DiscoveryError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)
        logger.debug("Loaded %d sessions from %s", len(sessions), self.sessions_dir)
        return sessions

    def run(self) -> tuple[list[SessionStats], AggregatedStats]:
        """Load, filter and aggregate."""
        filtered = filter_sessions(self.load(), self.opts)
        return filtered, aggregate(filtered, self.opts)


def _end_of_day(day: datetime) -> datetime:
    return day.replace(hour=23, minute=59, second=59, microsecond=999999).astimezone()


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    envvar="PISTATS_CONFIG",
    default=None,
    help="Config file (default: ~/.config/pistats/config.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool):
    """pistats — usage analytics for pi coding-agent sessions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    if ctx.invoked_subcommand is None:
        ctx.invoke(summary)


@cli.command()
@query_options
@click.pass_obj
def summary(config: StatsConfig, **options):
    """Overview of sessions, messages, tools, tokens (default)."""
    query = Query.from_options(config, options)
    _, stats = query.run()
    if query.fmt == "json":
        json_output.print_json(stats, "summary", query.show_cost)
    else:
        table.print_summary(stats, query.show_cost)


@cli.command()
@query_options
@click.option("--audit", is_flag=True, help="Also list registered tools that are never or rarely used.")
@click.pass_obj
def tools(config: StatsConfig, audit: bool, **options):
    """Tool usage: calls, errors, session share, last used."""
    query = Query.from_options(config, options)
    _, stats = query.run()

    tool_audit = None
    if audit:
        registered = discover_registered_tools(query.extensions_dir)
        tool_audit = build_tool_audit(registered, stats.tools)

    if query.fmt == "json":
        json_output.print_json(stats, "tools", audit=tool_audit)
        return
    table.print_tools(stats, query.limit)
    if tool_audit is not None:
        table.print_tool_audit(tool_audit)


@cli.command()
@query_options
@click.pass_obj
def models(config: StatsConfig, **options):
    """Model usage by calls and tokens."""
    query = Query.from_options(config, options)
    _, stats = query.run()
    if query.fmt == "json":
        json_output.print_json(stats, "models", query.show_cost)
    else:
        table.print_models(stats, query.limit, query.show_cost)


@cli.command()
@query_options
@click.pass_obj
def projects(config: StatsConfig, **options):
    """Activity per project."""
    query = Query.from_options(config, options)
    _, stats = query.run()
    if query.fmt == "json":
        json_output.print_json(stats, "projects")
    else:
        table.print_projects(stats, query.limit)


@cli.command()
@query_options
@click.pass_obj
def sessions(config: StatsConfig, **options):
    """Individual sessions, most recent first."""
    query = Query.from_options(config, options)
    _, stats = query.run()
    if query.fmt == "json":
        json_output.print_json(stats, "sessions", query.show_cost)
    else:
        table.print_sessions(stats, query.limit, query.show_cost)


@cli.command()
@query_options
@click.option("--metric", type=click.Choice(METRICS), default="tokens", help="What to count per bucket.")
@click.option("--by", type=click.Choice(DIMENSIONS), default=None, help="Break each bucket down by this dimension.")
@click.option("--top", type=click.IntRange(min=1), default=5, help="Categories kept before folding into 'other'.")
@click.option("--bucket", type=click.Choice(BUCKET_SIZES), default=None, help="Bucket size (default: from period).")
@click.pass_obj
def trends(config: StatsConfig, metric: str, by: str | None, top: int, bucket: str | None, **options):
    """Usage over time, bucketed by hour, day, week or month."""
    query = Query.from_options(config, options)
    filtered, stats = query.run()

    size = bucket or bucket_size_for_period(query.opts.period)
    breakdown = BreakdownOptions(by=by, top=top) if by else None
    series = build_time_series(filtered, metric, size, breakdown)

    if query.fmt == "json":
        json_output.print_trend_json(stats.period, metric, size, series)
        return
    title = f"{metric.replace('-', ' ').capitalize()} — {stats.period.label}"
    if by:
        title += f" (by {by})"
    print_trend(series, title)


@cli.command()
@query_options
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("pistats-report.html"),
    show_default=True,
    help="Where to write the HTML report.",
)
@click.option("--open", "open_report", is_flag=True, help="Open the report in a browser.")
@click.pass_obj
def report(config: StatsConfig, output: Path, open_report: bool, **options):
    """Write a self-contained HTML dashboard covering every period."""
    query = Query.from_options(config, options)

    # The dashboard switches periods itself; only project filters apply here
    scope = FilterOptions(
        period="all",
        project=query.opts.project,
        exclude_projects=query.opts.exclude_projects,
    )
    selected = filter_sessions(query.load(), scope)

    html = generate_html(selected, default_period=query.opts.period)
    output.write_text(html, encoding="utf-8")
    click.echo(f"Report written to {output} ({len(selected)} sessions)")

    if open_report:
        click.launch(str(output.resolve()))
