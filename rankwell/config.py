"""
rankwell.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **infrastructure-only** settings (bot identity,
announcement fallback channel, write timeout, voice tick cadence).  Per-guild
gameplay tuning (XP amounts, cooldowns, toggles) lives in the
``guild_experience_settings`` table and is served by
:class:`~rankwell.engine.cache.GuildSettingsCache`.

Usage::

    from rankwell.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.community_name)        # "Rankwell Dev"
    print(cfg.award_timeout_seconds) # 5.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True, slots=True)
class RankwellConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    bot_prefix: str

    # Engine
    award_timeout_seconds: float = 5.0
    voice_tick_seconds: int = 60

    # Presentation
    leaderboard_page_size: int = 10
    announce_channel_id: int | None = None  # Fallback channel for level-ups


def load_config(path: str | Path = "config.yaml") -> RankwellConfig:
    """Read *path* and return a :class:`RankwellConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a numeric value is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    timeout = float(raw.get("award_timeout_seconds", 5.0))
    if timeout <= 0:
        raise ValueError("award_timeout_seconds must be positive")
    tick = int(raw.get("voice_tick_seconds", 60))
    if tick <= 0:
        raise ValueError("voice_tick_seconds must be positive")
    page_size = int(raw.get("leaderboard_page_size", 10))
    if page_size <= 0:
        raise ValueError("leaderboard_page_size must be positive")

    return RankwellConfig(
        community_name=raw["community_name"],
        bot_prefix=raw["bot_prefix"],
        award_timeout_seconds=timeout,
        voice_tick_seconds=tick,
        leaderboard_page_size=page_size,
        announce_channel_id=(
            int(raw["announce_channel_id"]) if raw.get("announce_channel_id") else None
        ),
    )
