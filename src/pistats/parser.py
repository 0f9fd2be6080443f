"""JSONL parser — reads pi session logs into typed entries and SessionStats."""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pistats.models import (
    AgentMessage,
    AssistantMessage,
    BashExecutionMessage,
    MessageEntry,
    ModelChangeEntry,
    ModelUsage,
    ParseResult,
    RawLogEntry,
    SessionHeader,
    SessionStats,
    ThinkingLevelChangeEntry,
    TokenUsage,
    ToolResultMessage,
    ToolUsage,
    UnknownEntry,
    UnknownMessage,
    Usage,
    UserMessage,
)

if TYPE_CHECKING:
    from pistats.cache import StatsCache

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FileReadError(Exception):
    """A session file exists but could not be read."""

    def __init__(self, path: Path, cause: Exception):
        super().__init__(f"cannot read {path}: {cause}")
        self.path = path
        self.cause = cause


class DiscoveryError(Exception):
    """The sessions directory could not be enumerated."""


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def read_session_file(file_path: Path) -> ParseResult:
    """Parse a single JSONL file into typed entries.

    Blank lines are ignored. Lines that are not UTF-8 JSON objects (e.g. a
    line truncated by a crash mid-write, possibly inside a multibyte
    character) are counted in ``skipped``.
    """
    file_path = Path(file_path)
    entries: list[RawLogEntry] = []
    skipped = 0

    try:
        with open(file_path, "rb") as f:
            for raw in f:
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    data = json.loads(raw.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError):
                    skipped += 1
                    continue
                if not isinstance(data, dict):
                    skipped += 1
                    continue
                entries.append(parse_entry(data))
    except OSError as e:
        raise FileReadError(file_path, e) from e

    if skipped:
        logger.debug("Skipped %d malformed line(s) in %s", skipped, file_path)
    return ParseResult(entries=entries, skipped=skipped)


def parse_entry(data: dict) -> RawLogEntry:
    """Map one decoded JSONL object to its entry variant."""
    entry_type = data.get("type")
    entry_id = _str_or_none(data.get("id"))
    timestamp = _parse_timestamp(data.get("timestamp"))

    if entry_type == "session":
        return SessionHeader(
            id=str(data.get("id") or ""),
            timestamp=timestamp,
            cwd=_str_or_none(data.get("cwd")) or "",
            version=data.get("version") if isinstance(data.get("version"), int) else None,
        )
    if entry_type == "message":
        return MessageEntry(
            id=entry_id,
            timestamp=timestamp,
            message=parse_message(data.get("message")),
        )
    if entry_type == "model_change":
        return ModelChangeEntry(
            id=entry_id,
            timestamp=timestamp,
            provider=_str_or_none(data.get("provider")),
            model_id=_str_or_none(data.get("modelId")),
        )
    if entry_type == "thinking_level_change":
        return ThinkingLevelChangeEntry(
            id=entry_id,
            timestamp=timestamp,
            thinking_level=_str_or_none(data.get("thinkingLevel")),
        )
    return UnknownEntry(type=str(entry_type or ""), raw=data)


def parse_message(data: object) -> AgentMessage | None:
    """Map a message payload to its role variant. No role means no message."""
    if not isinstance(data, dict):
        return None
    role = data.get("role")
    if not role:
        return None
    timestamp = _parse_timestamp(data.get("timestamp"))

    if role == "user":
        return UserMessage(timestamp=timestamp)

    if role == "assistant":
        tool_calls: list[str] = []
        content = data.get("content")
        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get("type") == "toolCall":
                    tool_calls.append(str(block.get("name") or "unknown"))
        usage_data = data.get("usage")
        usage = None
        if isinstance(usage_data, dict):
            cost_data = usage_data.get("cost")
            usage = Usage(
                input=int(_num(usage_data.get("input"))),
                output=int(_num(usage_data.get("output"))),
                cache_read=int(_num(usage_data.get("cacheRead"))),
                cache_write=int(_num(usage_data.get("cacheWrite"))),
                total=int(_num(usage_data.get("totalTokens"))),
                cost=float(_num(cost_data.get("total"))) if isinstance(cost_data, dict) else 0.0,
            )
        return AssistantMessage(
            model=_str_or_none(data.get("model")),
            provider=_str_or_none(data.get("provider")),
            usage=usage,
            tool_calls=tool_calls,
            timestamp=timestamp,
        )

    if role == "toolResult":
        return ToolResultMessage(
            tool_call_id=_str_or_none(data.get("toolCallId")),
            tool_name=_str_or_none(data.get("toolName")),
            is_error=bool(data.get("isError")),
            timestamp=timestamp,
        )

    if role == "bashExecution":
        exit_code = data.get("exitCode")
        return BashExecutionMessage(
            command=_str_or_none(data.get("command")),
            exit_code=exit_code if isinstance(exit_code, int) else None,
            timestamp=timestamp,
        )

    return UnknownMessage(role=str(role), timestamp=timestamp)


# ---------------------------------------------------------------------------
# Stats derivation
# ---------------------------------------------------------------------------


def derive_session_stats(entries: list[RawLogEntry], cwd_fallback: str = "") -> SessionStats | None:
    """Fold a session's entries into one SessionStats.

    Returns None when there is no session header: such a file is not a
    session and is left out of results without being reported.
    """
    header = next((e for e in entries if isinstance(e, SessionHeader)), None)
    if header is None or header.timestamp is None:
        return None

    cwd = header.cwd or cwd_fallback
    start_time = header.timestamp
    end_time = header.timestamp

    message_count = 0
    user_messages = 0
    assistant_messages = 0
    tool_calls = 0
    tool_results = 0
    tool_errors = 0
    tokens = TokenUsage()
    cost = 0.0
    tools: dict[str, ToolUsage] = {}
    models: dict[str, ModelUsage] = {}

    for entry in entries:
        if not isinstance(entry, MessageEntry) or entry.message is None:
            continue
        msg = entry.message

        # Message timestamp wins over the entry timestamp
        ts = msg.timestamp or entry.timestamp
        if ts is not None and ts > end_time:
            end_time = ts

        if isinstance(msg, UserMessage):
            message_count += 1
            user_messages += 1

        elif isinstance(msg, AssistantMessage):
            message_count += 1
            assistant_messages += 1
            usage = msg.usage or Usage()
            tokens.input += usage.input
            tokens.output += usage.output
            tokens.cache_read += usage.cache_read
            tokens.cache_write += usage.cache_write
            tokens.total += usage.total
            cost += usage.cost

            if msg.model:
                key = f"{msg.model}@{msg.provider or 'unknown'}"
                model_entry = models.setdefault(key, ModelUsage())
                model_entry.calls += 1
                model_entry.tokens += usage.total
                model_entry.cost += usage.cost

            for name in msg.tool_calls:
                tool_calls += 1
                tools.setdefault(name, ToolUsage()).calls += 1

        elif isinstance(msg, ToolResultMessage):
            message_count += 1
            tool_results += 1
            if msg.is_error:
                tool_errors += 1
                # Results for tools with no recorded call get no per-tool tally
                tool_entry = tools.get(msg.tool_name or "")
                if tool_entry is not None:
                    tool_entry.errors += 1

        # bashExecution and unknown roles only move end_time

    duration = int((end_time - start_time).total_seconds() * 1000)

    return SessionStats(
        id=header.id,
        cwd=cwd,
        project=cwd_to_project(cwd),
        start_time=start_time,
        end_time=end_time,
        duration=max(0, duration),
        message_count=message_count,
        user_messages=user_messages,
        assistant_messages=assistant_messages,
        tool_calls=tool_calls,
        tool_results=tool_results,
        tool_errors=tool_errors,
        tokens=tokens,
        cost=cost,
        tools=tools,
        models=models,
    )


def parse_session_stats(file_path: Path) -> SessionStats | None:
    """Read a session file and derive its stats (None for header-less files)."""
    file_path = Path(file_path)
    result = read_session_file(file_path)
    return derive_session_stats(
        result.entries, cwd_fallback=decode_dir_name(file_path.parent.name),
    )


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_session_files(sessions_dir: Path) -> list[Path]:
    """Find every *.jsonl file inside the per-project subdirectories."""
    sessions_dir = Path(sessions_dir)
    if not sessions_dir.is_dir():
        return []

    results: list[Path] = []
    try:
        for project_dir in sessions_dir.iterdir():
            if not project_dir.is_dir():
                continue
            for jsonl_file in project_dir.glob("*.jsonl"):
                if jsonl_file.is_file():
                    results.append(jsonl_file)
    except OSError as e:
        raise DiscoveryError(f"cannot list sessions in {sessions_dir}: {e}") from e
    results.sort()
    return results


def load_sessions(sessions_dir: Path, cache: StatsCache | None = None) -> list[SessionStats]:
    """Parse (or fetch from cache) every session under sessions_dir."""
    results: list[SessionStats] = []

    for file_path in discover_session_files(sessions_dir):
        abs_path = str(file_path.resolve())
        try:
            mtime = file_path.stat().st_mtime_ns
        except OSError as e:
            logger.warning("Skipping %s: %s", file_path, e)
            continue

        if cache is not None:
            cached = cache.get(abs_path, mtime)
            if cached is not None:
                results.append(cached)
                continue

        try:
            stats = parse_session_stats(file_path)
        except FileReadError as e:
            logger.warning("Skipping %s", e)
            continue
        if stats is None:
            continue

        if cache is not None:
            cache.set(abs_path, mtime, stats)
        results.append(stats)

    return results


# ---------------------------------------------------------------------------
# Project naming
# ---------------------------------------------------------------------------


def cwd_to_project(cwd: str, home: str | None = None) -> str:
    """Derive a short project name from a working directory.

    e.g. '/home/user/src/tektoncd/pipeline' -> 'tektoncd/pipeline'
    """
    if home is None:
        home = str(Path.home())
    rel = cwd[len(home):] if home and cwd.startswith(home) else cwd
    rel = re.sub(r"^/src/", "", rel)
    rel = re.sub(r"^/", "", rel)
    return rel or "~"


def decode_dir_name(dir_name: str) -> str:
    """Decode a session directory name back to the cwd it encodes.

    e.g. '--home-user-src-myproject--' -> '/home/user/src/myproject'.
    Names that don't follow the convention are returned unchanged.
    """
    if len(dir_name) > 4 and dir_name.startswith("--") and dir_name.endswith("--"):
        return "/" + dir_name[2:-2].replace("-", "/")
    return dir_name


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO 8601 string or epoch milliseconds into an aware datetime."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return _EPOCH + timedelta(milliseconds=value)
        except (OverflowError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            # Handle Z suffix
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _num(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    # json.loads yields inf/nan for 1e400, Infinity and NaN
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return value


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None
