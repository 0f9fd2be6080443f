"""Configuration loader — reads optional YAML config and merges with defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from pistats.filters import PERIOD_NAMES

CONFIG_PATH = Path("~/.config/pistats/config.yaml")

DEFAULTS = {
    "sessions_dir": "~/.pi/agent/sessions",
    "cache_dir": "~/.cache/pi-stats",
    "extensions_dir": "~/.pi/agent/extensions",
    "period": "week",
    "limit": 20,
    "show_cost": False,
    "use_cache": True,
}


class ConfigError(ValueError):
    """A config file value is unusable."""


@dataclass
class StatsConfig:
    sessions_dir: Path
    cache_dir: Path
    extensions_dir: Path
    period: str
    limit: int
    show_cost: bool
    use_cache: bool


def load_config(config_path: Path | None = None) -> StatsConfig:
    """Load config from ~/.config/pistats/config.yaml, merged with defaults.

    Expand ~ in paths. If no config file exists, return defaults (don't error).
    Unknown keys are ignored. An invalid period or limit raises ConfigError.
    """
    if config_path is None:
        config_path = CONFIG_PATH

    config_path = config_path.expanduser()

    merged = dict(DEFAULTS)

    if config_path.is_file():
        with open(config_path) as f:
            user_config = yaml.safe_load(f)
        if isinstance(user_config, dict):
            for key in DEFAULTS:
                if key in user_config:
                    merged[key] = user_config[key]

    if merged["period"] not in PERIOD_NAMES:
        raise ConfigError(
            f"{config_path}: period must be one of {', '.join(PERIOD_NAMES)}, got {merged['period']!r}"
        )
    if isinstance(merged["limit"], bool) or not isinstance(merged["limit"], int) or merged["limit"] < 1:
        raise ConfigError(f"{config_path}: limit must be a positive integer, got {merged['limit']!r}")

    return StatsConfig(
        sessions_dir=Path(merged["sessions_dir"]).expanduser(),
        cache_dir=Path(merged["cache_dir"]).expanduser(),
        extensions_dir=Path(merged["extensions_dir"]).expanduser(),
        period=str(merged["period"]),
        limit=int(merged["limit"]),
        show_cost=bool(merged["show_cost"]),
        use_cache=bool(merged["use_cache"]),
    )
