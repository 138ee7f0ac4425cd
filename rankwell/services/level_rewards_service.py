"""
rankwell.services.level_rewards_service — Level Reward CRUD
============================================================

Typed read/write access to the ``guild_level_rewards`` table.  Callers go
through :class:`~rankwell.engine.cache.LevelRewardCache`, which calls back
here on startup and on every admin edit.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session

from rankwell.database.engine import get_session
from rankwell.database.models import GuildLevelRewards
from rankwell.engine.errors import ValidationError
from rankwell.engine.rewards import LevelRewardConfig

logger = logging.getLogger(__name__)


def _parse(row: GuildLevelRewards) -> LevelRewardConfig:
    try:
        return LevelRewardConfig.from_dict(json.loads(row.value_json))
    except (json.JSONDecodeError, ValidationError, TypeError, KeyError, ValueError):
        logger.warning(
            "Invalid level rewards for guild %d — ignoring stored table",
            row.guild_id,
        )
        return LevelRewardConfig()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_guild_rewards(engine: Engine, guild_id: int) -> LevelRewardConfig | None:
    with Session(engine) as session:
        row = session.get(GuildLevelRewards, guild_id)
        return _parse(row) if row is not None else None


def load_all_rewards(engine: Engine) -> dict[int, LevelRewardConfig]:
    with Session(engine) as session:
        rows = session.scalars(select(GuildLevelRewards)).all()
        return {row.guild_id: _parse(row) for row in rows}


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def save_guild_rewards(
    engine: Engine, guild_id: int, config: LevelRewardConfig
) -> None:
    """Insert or replace the reward table for *guild_id*."""
    payload = json.dumps(config.to_dict(), sort_keys=True)
    with get_session(engine) as session:
        row = session.get(GuildLevelRewards, guild_id)
        if row is None:
            session.add(GuildLevelRewards(guild_id=guild_id, value_json=payload))
        else:
            row.value_json = payload
    logger.info(
        "Saved %d level reward(s) for guild %d (%s mode)",
        len(config.rewards), guild_id, config.mode.value,
    )


def delete_guild_rewards(engine: Engine, guild_id: int) -> bool:
    with get_session(engine) as session:
        result = session.execute(
            delete(GuildLevelRewards).where(GuildLevelRewards.guild_id == guild_id)
        )
        return result.rowcount > 0
