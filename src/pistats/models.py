"""Shared data models — the contract between parser, cache, filters, aggregator and trends.

Parser produces raw entries and one SessionStats per session file.
Cache stores SessionStats. Filters and the aggregator consume lists of
SessionStats and produce AggregatedStats. Trends produce TimeSeriesPoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# ---------------------------------------------------------------------------
# Raw JSONL entries
# ---------------------------------------------------------------------------


@dataclass
class Usage:
    """Token usage and cost reported on one assistant message."""

    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0
    total: int = 0
    cost: float = 0.0


@dataclass
class UserMessage:
    timestamp: datetime | None = None


@dataclass
class AssistantMessage:
    """An assistant turn. Content blocks are reduced to tool-call names, in order."""

    model: str | None = None
    provider: str | None = None
    usage: Usage | None = None
    tool_calls: list[str] = field(default_factory=list)
    timestamp: datetime | None = None


@dataclass
class ToolResultMessage:
    tool_call_id: str | None = None
    tool_name: str | None = None
    is_error: bool = False
    timestamp: datetime | None = None


@dataclass
class BashExecutionMessage:
    command: str | None = None
    exit_code: int | None = None
    timestamp: datetime | None = None


@dataclass
class UnknownMessage:
    """Any message whose role is not recognized."""

    role: str
    timestamp: datetime | None = None


AgentMessage = (
    UserMessage | AssistantMessage | ToolResultMessage | BashExecutionMessage | UnknownMessage
)


@dataclass
class SessionHeader:
    id: str
    timestamp: datetime | None
    cwd: str = ""
    version: int | None = None


@dataclass
class MessageEntry:
    id: str | None
    timestamp: datetime | None
    message: AgentMessage | None


@dataclass
class ModelChangeEntry:
    id: str | None
    timestamp: datetime | None
    provider: str | None = None
    model_id: str | None = None


@dataclass
class ThinkingLevelChangeEntry:
    id: str | None
    timestamp: datetime | None
    thinking_level: str | None = None


@dataclass
class UnknownEntry:
    """Any line whose type is missing or not recognized."""

    type: str
    raw: dict


RawLogEntry = (
    SessionHeader | MessageEntry | ModelChangeEntry | ThinkingLevelChangeEntry | UnknownEntry
)


@dataclass
class ParseResult:
    """Entries recovered from one file, plus how many lines were unusable."""

    entries: list[RawLogEntry]
    skipped: int = 0


# ---------------------------------------------------------------------------
# Per-session stats
# ---------------------------------------------------------------------------


@dataclass
class TokenUsage:
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0
    total: int = 0


@dataclass
class ToolUsage:
    calls: int = 0
    errors: int = 0


@dataclass
class ModelUsage:
    calls: int = 0
    tokens: int = 0
    cost: float = 0.0


@dataclass
class SessionStats:
    """Usage statistics for one session file.

    Produced by parser.py, persisted by cache.py, consumed by everything else.
    """

    id: str
    cwd: str
    project: str  # e.g., "tektoncd/pipeline"
    start_time: datetime
    end_time: datetime
    duration: int  # milliseconds
    message_count: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    tool_calls: int = 0
    tool_results: int = 0
    tool_errors: int = 0
    tokens: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    tools: dict[str, ToolUsage] = field(default_factory=dict)
    # Keyed by "<model>@<provider>"
    models: dict[str, ModelUsage] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass
class Period:
    from_: datetime
    to: datetime
    label: str


@dataclass
class FilterOptions:
    period: str = "week"
    from_: datetime | None = None
    to: datetime | None = None
    project: str | None = None
    exclude_projects: list[str] = field(default_factory=list)


@dataclass
class ToolStats:
    name: str
    calls: int = 0
    errors: int = 0
    session_ids: set[str] = field(default_factory=set)
    last_used: datetime | None = None


@dataclass
class ModelStats:
    model: str
    provider: str
    calls: int = 0
    tokens: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0


@dataclass
class ProjectStats:
    sessions: int = 0
    messages: int = 0
    tool_calls: int = 0
    tokens: int = 0


@dataclass
class AggregatedStats:
    period: Period
    sessions: list[SessionStats]
    total_sessions: int = 0
    total_messages: int = 0
    total_user_messages: int = 0
    total_assistant_messages: int = 0
    total_tool_calls: int = 0
    total_tool_results: int = 0
    total_tool_errors: int = 0
    total_tokens: TokenUsage = field(default_factory=TokenUsage)
    total_cost: float = 0.0
    tools: dict[str, ToolStats] = field(default_factory=dict)
    models: dict[str, ModelStats] = field(default_factory=dict)
    projects: dict[str, ProjectStats] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------


@dataclass
class BreakdownOptions:
    by: str  # tool, model, provider, project
    top: int = 5


@dataclass
class TimeSeriesPoint:
    date: datetime  # bucket start, UTC
    label: str  # e.g. "Feb 10", "W07", "14:00"
    value: float
    breakdown: dict[str, float] | None = None
