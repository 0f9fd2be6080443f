"""Per-session stats cache with mtime-based invalidation.

Session files are append-only, so an unchanged mtime means unchanged stats.
Each file gets one JSON record under <cache_dir>/v1/, named by a hash of its
absolute path. The cache is only an optimization: every failure is a miss.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pistats.models import ModelUsage, SessionStats, TokenUsage, ToolUsage

logger = logging.getLogger(__name__)

CACHE_VERSION = "v1"
DEFAULT_CACHE_DIR = Path("~/.cache/pi-stats")


class StatsCache:
    """Maps (absolute session path, mtime) to previously computed SessionStats."""

    def __init__(self, cache_dir: Path | None = None):
        if cache_dir is None:
            cache_dir = DEFAULT_CACHE_DIR
        self.dir = Path(cache_dir).expanduser() / CACHE_VERSION

    def get(self, session_path: str, mtime: int) -> SessionStats | None:
        """Return cached stats, or None if missing, unreadable or stale."""
        cache_file = self.cache_file_path(session_path)
        if not cache_file.is_file():
            return None

        try:
            with open(cache_file, encoding="utf-8") as f:
                record = json.load(f)
            if not isinstance(record, dict) or record.get("mtime") != mtime:
                return None
            return deserialize_stats(record["stats"])
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.debug("Ignoring unreadable cache record %s: %s", cache_file, e)
            return None

    def set(self, session_path: str, mtime: int, stats: SessionStats) -> None:
        """Store stats for a session file. Write failures are not fatal."""
        cache_file = self.cache_file_path(session_path)
        record = {"mtime": mtime, "stats": serialize_stats(stats)}

        try:
            self.dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record, f)
                os.replace(tmp_name, cache_file)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.debug("Could not write cache record for %s: %s", session_path, e)

    def cache_file_path(self, session_path: str) -> Path:
        digest = hashlib.sha256(session_path.encode("utf-8")).hexdigest()[:16]
        return self.dir / f"{digest}.json"


def serialize_stats(stats: SessionStats) -> dict:
    """Convert SessionStats to plain JSON data.

    Datetimes become ISO 8601 strings; the tool and model maps become lists
    of [key, value] pairs so their order survives the round trip.
    """
    return {
        "id": stats.id,
        "cwd": stats.cwd,
        "project": stats.project,
        "startTime": stats.start_time.isoformat(),
        "endTime": stats.end_time.isoformat(),
        "duration": stats.duration,
        "messageCount": stats.message_count,
        "userMessages": stats.user_messages,
        "assistantMessages": stats.assistant_messages,
        "toolCalls": stats.tool_calls,
        "toolResults": stats.tool_results,
        "toolErrors": stats.tool_errors,
        "tokens": {
            "input": stats.tokens.input,
            "output": stats.tokens.output,
            "cacheRead": stats.tokens.cache_read,
            "cacheWrite": stats.tokens.cache_write,
            "total": stats.tokens.total,
        },
        "cost": stats.cost,
        "tools": [
            [name, {"calls": t.calls, "errors": t.errors}]
            for name, t in stats.tools.items()
        ],
        "models": [
            [key, {"calls": m.calls, "tokens": m.tokens, "cost": m.cost}]
            for key, m in stats.models.items()
        ],
    }


def deserialize_stats(raw: dict) -> SessionStats:
    """Inverse of serialize_stats.

    Raises KeyError, ValueError or TypeError on bad records, including fields
    of the wrong JSON type.
    """
    tokens = raw["tokens"]
    return SessionStats(
        id=_str(raw["id"]),
        cwd=_str(raw["cwd"]),
        project=_str(raw["project"]),
        start_time=datetime.fromisoformat(_str(raw["startTime"])),
        end_time=datetime.fromisoformat(_str(raw["endTime"])),
        duration=_int(raw["duration"]),
        message_count=_int(raw["messageCount"]),
        user_messages=_int(raw["userMessages"]),
        assistant_messages=_int(raw["assistantMessages"]),
        tool_calls=_int(raw["toolCalls"]),
        tool_results=_int(raw["toolResults"]),
        tool_errors=_int(raw["toolErrors"]),
        tokens=TokenUsage(
            input=_int(tokens["input"]),
            output=_int(tokens["output"]),
            cache_read=_int(tokens["cacheRead"]),
            cache_write=_int(tokens["cacheWrite"]),
            total=_int(tokens["total"]),
        ),
        cost=_float(raw["cost"]),
        tools={
            _str(name): ToolUsage(calls=_int(t["calls"]), errors=_int(t["errors"]))
            for name, t in raw["tools"]
        },
        models={
            _str(key): ModelUsage(calls=_int(m["calls"]), tokens=_int(m["tokens"]), cost=_float(m["cost"]))
            for key, m in raw["models"]
        },
    )


def _str(value: object) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected string, got {type(value).__name__}")
    return value


def _int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected integer, got {type(value).__name__}")
    return value


def _float(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected number, got {type(value).__name__}")
    return float(value)
