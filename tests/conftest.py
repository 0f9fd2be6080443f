"""Shared test fixtures for pistats tests."""

import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from pistats.models import ModelUsage, SessionStats, TokenUsage, ToolUsage

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_jsonl():
    """Path to a clean session (test-session-001 in myproject) with one truncated line."""
    return FIXTURES_DIR / "sample-session.jsonl"


@pytest.fixture
def errors_jsonl():
    """Path to a session with tool errors (test-session-002 in tektoncd/pipeline)."""
    return FIXTURES_DIR / "session-with-errors.jsonl"


@pytest.fixture
def no_header_jsonl():
    """Path to a file with messages but no session header."""
    return FIXTURES_DIR / "no-header.jsonl"


@pytest.fixture
def home(monkeypatch):
    """Pin the home directory so project names derive predictably."""
    monkeypatch.setenv("HOME", "/home/user")
    return "/home/user"


@pytest.fixture
def sessions_dir(tmp_path):
    """A sessions directory laid out like pi's: one subdirectory per project."""
    root = tmp_path / "sessions"
    first = root / "--home-user-src-myproject--"
    second = root / "--home-user-src-tektoncd-pipeline--"
    first.mkdir(parents=True)
    second.mkdir(parents=True)
    shutil.copy(FIXTURES_DIR / "sample-session.jsonl", first / "2026-02-10T10-00-00_test-session-001.jsonl")
    shutil.copy(FIXTURES_DIR / "session-with-errors.jsonl", second / "2026-02-11T14-00-00_test-session-002.jsonl")
    shutil.copy(FIXTURES_DIR / "no-header.jsonl", second / "2026-02-09T09-00-00_orphan.jsonl")
    (root / "stray.jsonl").write_text("{}\n")
    return root


def make_session(
    session_id: str,
    start: datetime,
    project: str = "myproject",
    tokens: int = 100,
    tool_calls: dict[str, int] | None = None,
    models: dict[str, int] | None = None,
    messages: int = 4,
    cost: float = 0.0,
) -> SessionStats:
    """Build a SessionStats directly, for tests that don't need a log file."""
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    tools = {name: ToolUsage(calls=calls) for name, calls in (tool_calls or {}).items()}
    model_usage = {key: ModelUsage(calls=1, tokens=value) for key, value in (models or {}).items()}
    return SessionStats(
        id=session_id,
        cwd=f"/home/user/src/{project}",
        project=project,
        start_time=start,
        end_time=start,
        duration=0,
        message_count=messages,
        user_messages=messages // 2,
        assistant_messages=messages - messages // 2,
        tool_calls=sum(t.calls for t in tools.values()),
        tokens=TokenUsage(input=tokens, total=tokens),
        cost=cost,
        tools=tools,
        models=model_usage,
    )
