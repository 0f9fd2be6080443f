"""Tool inventory discovery and audit.

Scans pi extensions for registered tools and compares them against actual
usage to find never-used and rarely-used tools.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pistats.models import ToolStats

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS_DIR = Path("~/.pi/agent/extensions")

BUILTIN_TOOLS = ("bash", "read", "edit", "write", "grep", "find", "ls")
BUILTIN_EXTENSION = "built-in"

RARELY_USED_THRESHOLD = 5

_TOOL_NAME = re.compile(r"""name:\s*["']([a-zA-Z_][a-zA-Z0-9_]*)["']""")


@dataclass
class RegisteredTool:
    name: str
    extension: str
    calls: int = 0


@dataclass
class ToolAudit:
    never_used: list[RegisteredTool] = field(default_factory=list)
    rarely_used: list[RegisteredTool] = field(default_factory=list)
    by_extension: dict[str, list[RegisteredTool]] = field(default_factory=dict)


def discover_registered_tools(extensions_dir: Path | None = None) -> list[RegisteredTool]:
    """Built-in tools plus every tool declared by an installed extension.

    An extension is either a directory with an index.ts or a top-level .ts
    file (test files excluded).
    """
    tools = [RegisteredTool(name=name, extension=BUILTIN_EXTENSION) for name in BUILTIN_TOOLS]

    if extensions_dir is None:
        extensions_dir = DEFAULT_EXTENSIONS_DIR
    extensions_dir = Path(extensions_dir).expanduser()
    if not extensions_dir.is_dir():
        return tools

    for entry in sorted(extensions_dir.iterdir()):
        if entry.is_dir():
            index = entry / "index.ts"
            if index.is_file():
                tools.extend(
                    RegisteredTool(name=name, extension=entry.name)
                    for name in extract_tool_names(index)
                )
        elif entry.suffix == ".ts" and not entry.name.endswith(".test.ts"):
            tools.extend(
                RegisteredTool(name=name, extension=entry.stem)
                for name in extract_tool_names(entry)
            )

    return tools


def extract_tool_names(file_path: Path) -> list[str]:
    """Tool names declared as `name: "tool_name"` in an extension source file."""
    try:
        content = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read %s: %s", file_path, e)
        return []
    return _TOOL_NAME.findall(content)


def build_tool_audit(registered: list[RegisteredTool], tools: Mapping[str, ToolStats]) -> ToolAudit:
    """Classify registered tools by how often they were actually called."""
    audit = ToolAudit()
    for tool in registered:
        usage = tools.get(tool.name)
        calls = usage.calls if usage is not None else 0
        entry = RegisteredTool(name=tool.name, extension=tool.extension, calls=calls)

        if calls == 0:
            audit.never_used.append(entry)
        elif calls < RARELY_USED_THRESHOLD:
            audit.rarely_used.append(entry)

        audit.by_extension.setdefault(tool.extension, []).append(entry)
    return audit


def classify_tools(tools: Mapping[str, ToolStats]) -> tuple[list[ToolStats], list[ToolStats]]:
    """Split aggregated tools into (built-in, extension), each sorted by calls descending."""
    builtin = [t for name, t in tools.items() if name in BUILTIN_TOOLS]
    extension = [t for name, t in tools.items() if name not in BUILTIN_TOOLS]
    builtin.sort(key=lambda t: t.calls, reverse=True)
    extension.sort(key=lambda t: t.calls, reverse=True)
    return builtin, extension
