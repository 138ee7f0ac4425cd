"""
Rankwell — Experience & Leveling for Discord Communities
=========================================================
Turns community activity (messages, commands, role grants, voice presence)
into experience points, derives levels from a single canonical curve, ranks
members per guild, and announces level-ups.

Package layout::

    rankwell/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Presentation constants + default tuning values
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helpers
    │   └── models.py      # ORM models (experience records, guild settings)
    ├── engine/
    │   ├── levels.py      # Leveling curve (pure)
    │   ├── cooldown.py    # Per-source cooldown guard
    │   ├── events.py      # ActivitySource, AwardResult, LevelUp
    │   ├── settings.py    # GuildExperienceConfig value object
    │   ├── cache.py       # In-memory guild settings cache
    │   └── errors.py      # Exception hierarchy
    ├── services/
    │   ├── experience_store.py    # Atomic record writes
    │   ├── award_service.py       # AwardProcessor
    │   ├── leaderboard_service.py # LeaderboardRanker
    │   ├── level_up_emitter.py    # Level-up fact delivery
    │   ├── settings_service.py    # Guild settings persistence
    │   ├── announcement_service.py # Level-up announcer (notifier)
    │   ├── embeds.py              # Discord embed builders
    │   └── throttle.py            # Per-channel announcement throttle
    ├── bot/
    │   ├── core.py        # Bot subclass, engine wiring, cog loader
    │   └── cogs/
    │       ├── activity.py  # message / command / role awards
    │       ├── voice.py     # voice presence ticks
    │       ├── levels.py    # /level, /leaderboard
    │       └── admin.py     # /xp-settings, /xp-give, /xp-reset …
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine/session dependencies
        └── routes/
            └── public.py  # Read-only leaderboard/rank/progress endpoints
"""

__version__ = "0.1.0"
