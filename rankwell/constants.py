"""
rankwell.constants — Shared Constants
======================================

Presentation constants and built-in tuning tables.  The leveling formula
itself lives in :mod:`rankwell.engine.levels`.
"""

from __future__ import annotations

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

LEVEL_UP_EMOJI = "\U0001f389"  # 🎉

# ---------------------------------------------------------------------------
# Command XP table — amounts at the default base of 8 XP.  A guild that
# changes its base scales every entry proportionally.
# ---------------------------------------------------------------------------
DEFAULT_COMMAND_XP_BASE = 8

COMMAND_XP_TABLE: dict[str, int] = {
    "8ball": 15,
    "avatar": 10,
    "serverinfo": 12,
    "userinfo": 12,
    "roles": 12,
    "level": 5,
    "leaderboard": 5,
    "help": 3,
    "ping": 3,
    "invite": 3,
    "support": 3,
}

# Voice presence is credited in whole minutes; one tick is never worth less.
MIN_VOICE_TICK_MINUTES = 1

# Level-based role rewards configurable per guild.
MAX_LEVEL_REWARDS = 25
