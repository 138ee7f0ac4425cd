"""
rankwell.services.settings_service — Guild XP Settings CRUD
============================================================

Typed read/write access to the ``guild_experience_settings`` table.  The
award path never calls this module directly; it reads through
:class:`~rankwell.engine.cache.GuildSettingsCache`, which calls back here on
startup and on every admin edit.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session

from rankwell.database.engine import get_session
from rankwell.database.models import GuildExperienceSettings
from rankwell.engine.errors import ValidationError
from rankwell.engine.settings import GuildExperienceConfig

logger = logging.getLogger(__name__)


def _parse(row: GuildExperienceSettings) -> GuildExperienceConfig:
    try:
        raw = json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        logger.warning(
            "Corrupt XP settings for guild %d — falling back to defaults",
            row.guild_id,
        )
        return GuildExperienceConfig()
    try:
        return GuildExperienceConfig.from_dict(raw)
    except (ValidationError, TypeError, AttributeError):
        logger.warning(
            "Invalid XP settings for guild %d — falling back to defaults",
            row.guild_id,
        )
        return GuildExperienceConfig()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_guild_settings(engine: Engine, guild_id: int) -> GuildExperienceConfig | None:
    """Return the stored config for *guild_id*, or None if never saved."""
    with Session(engine) as session:
        row = session.get(GuildExperienceSettings, guild_id)
        if row is None:
            return None
        return _parse(row)


def load_all_settings(engine: Engine) -> dict[int, GuildExperienceConfig]:
    """Return every stored guild config, keyed by guild id."""
    with Session(engine) as session:
        rows = session.scalars(select(GuildExperienceSettings)).all()
        return {row.guild_id: _parse(row) for row in rows}


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def save_guild_settings(
    engine: Engine, guild_id: int, config: GuildExperienceConfig
) -> None:
    """Insert or replace the stored config for *guild_id*."""
    payload = json.dumps(config.to_dict(), sort_keys=True)
    with get_session(engine) as session:
        row = session.get(GuildExperienceSettings, guild_id)
        if row is None:
            session.add(GuildExperienceSettings(guild_id=guild_id, value_json=payload))
        else:
            row.value_json = payload
    logger.info("Saved XP settings for guild %d", guild_id)


def delete_guild_settings(engine: Engine, guild_id: int) -> bool:
    """Remove the stored config for *guild_id*.  Returns True if a row existed."""
    with get_session(engine) as session:
        result = session.execute(
            delete(GuildExperienceSettings).where(
                GuildExperienceSettings.guild_id == guild_id
            )
        )
        return result.rowcount > 0
