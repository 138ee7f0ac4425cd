"""
rankwell.engine.cache — In-Memory Guild Settings Cache
=======================================================

The award path must not suspend on a settings lookup, so every guild's
:class:`GuildExperienceConfig` is held in memory.  The cache is warmed once
at startup with :meth:`GuildSettingsCache.load_all` and kept current by
routing admin edits through :meth:`GuildSettingsCache.update`, which writes
the database first and only then swaps the cached value.

Usage::

    cache = GuildSettingsCache(engine)
    cache.load_all()

    cfg = cache.get(guild_id)                 # defaults if never configured
    cache.update(guild_id, enabled=True)      # validate → persist → refresh

:class:`LevelRewardCache` applies the same pattern to each guild's level
reward roles, which the reward granter reads on every level-up.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from rankwell.engine.rewards import LevelRewardConfig, RewardMode
from rankwell.engine.settings import GuildExperienceConfig
from rankwell.services import level_rewards_service, settings_service

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class GuildSettingsCache:
    """Thread-safe guild_id → GuildExperienceConfig map."""

    def __init__(
        self,
        engine: Engine,
        default: GuildExperienceConfig | None = None,
    ) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._default = default or GuildExperienceConfig()
        self._configs: dict[int, GuildExperienceConfig] = {}

    # -------------------------------------------------------------------
    # Loading (synchronous — call directly at startup or via run_db)
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Replace the cache contents with every stored guild config."""
        configs = settings_service.load_all_settings(self._engine)
        with self._lock:
            self._configs = configs
        logger.info("GuildSettingsCache loaded: %d guild(s)", len(configs))

    def reload_guild(self, guild_id: int) -> GuildExperienceConfig:
        """Re-read one guild from the database."""
        cfg = settings_service.load_guild_settings(self._engine, guild_id)
        with self._lock:
            if cfg is None:
                self._configs.pop(guild_id, None)
            else:
                self._configs[guild_id] = cfg
        return cfg or self._default

    # -------------------------------------------------------------------
    # Reads (never touch the database)
    # -------------------------------------------------------------------
    def get(self, guild_id: int) -> GuildExperienceConfig:
        with self._lock:
            return self._configs.get(guild_id, self._default)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def update(self, guild_id: int, **changes: Any) -> GuildExperienceConfig:
        """Validate *changes*, persist them, then refresh the cached value.

        Raises :class:`~rankwell.engine.errors.ValidationError` on bad input;
        the cache is left untouched if the database write fails.
        """
        new_cfg = self.get(guild_id).with_changes(**changes)
        settings_service.save_guild_settings(self._engine, guild_id, new_cfg)
        with self._lock:
            self._configs[guild_id] = new_cfg
        return new_cfg

    def reset(self, guild_id: int) -> GuildExperienceConfig:
        """Restore defaults for *guild_id* (persisted)."""
        settings_service.save_guild_settings(self._engine, guild_id, self._default)
        with self._lock:
            self._configs[guild_id] = self._default
        return self._default

    def evict(self, guild_id: int) -> None:
        """Forget *guild_id* entirely (guild-removal cleanup)."""
        settings_service.delete_guild_settings(self._engine, guild_id)
        with self._lock:
            self._configs.pop(guild_id, None)


class LevelRewardCache:
    """Thread-safe guild_id → LevelRewardConfig map.

    Same write-through discipline as :class:`GuildSettingsCache`: edits are
    validated, persisted, and only then published to readers.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._configs: dict[int, LevelRewardConfig] = {}

    def load_all(self) -> None:
        configs = level_rewards_service.load_all_rewards(self._engine)
        with self._lock:
            self._configs = configs
        logger.info("LevelRewardCache loaded: %d guild(s)", len(configs))

    def get(self, guild_id: int) -> LevelRewardConfig:
        with self._lock:
            return self._configs.get(guild_id) or LevelRewardConfig()

    def _store(self, guild_id: int, cfg: LevelRewardConfig) -> LevelRewardConfig:
        level_rewards_service.save_guild_rewards(self._engine, guild_id, cfg)
        with self._lock:
            self._configs[guild_id] = cfg
        return cfg

    def add_reward(self, guild_id: int, level: int, role_id: int) -> LevelRewardConfig:
        return self._store(guild_id, self.get(guild_id).with_reward(level, role_id))

    def remove_reward(self, guild_id: int, level: int, role_id: int) -> LevelRewardConfig:
        return self._store(guild_id, self.get(guild_id).without_reward(level, role_id))

    def set_mode(self, guild_id: int, mode: RewardMode | str) -> LevelRewardConfig:
        return self._store(guild_id, self.get(guild_id).with_mode(mode))

    def evict(self, guild_id: int) -> None:
        level_rewards_service.delete_guild_rewards(self._engine, guild_id)
        with self._lock:
            self._configs.pop(guild_id, None)
