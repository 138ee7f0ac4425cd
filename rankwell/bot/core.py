"""
rankwell.bot.core — Bot Instance & Cog Loader
==============================================

:class:`RankwellBot` is a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``), DB engine (``bot.engine``) and
   guild settings cache (``bot.settings``).
2. Builds the award pipeline once: store, cooldown guard, level-up emitter,
   :class:`~rankwell.services.award_service.AwardProcessor` and the
   leaderboard ranker.  Cogs reach them as ``self.bot.awards`` /
   ``self.bot.ranker``.
3. Registers the level-up announcer and the reward-role granter as the
   emitter's notifiers.
4. Loads every Cog listed in :data:`EXTENSIONS` and syncs the slash-command
   tree on startup (guild-scoped for dev via ``DEV_GUILD_ID``, global
   otherwise).
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from rankwell.config import RankwellConfig
from rankwell.engine.cache import GuildSettingsCache, LevelRewardCache
from rankwell.engine.cooldown import CooldownGuard
from rankwell.services.announcement_service import LevelUpAnnouncer
from rankwell.services.award_service import AwardProcessor
from rankwell.services.experience_store import ExperienceStore
from rankwell.services.leaderboard_service import LeaderboardRanker
from rankwell.services.level_up_emitter import LevelUpEmitter
from rankwell.services.role_reward_service import LevelRoleRewarder

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "rankwell.bot.cogs.activity",
    "rankwell.bot.cogs.voice",
    "rankwell.bot.cogs.levels",
    "rankwell.bot.cogs.admin",
]


class RankwellBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`RankwellConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine`.
    settings:
        A warmed :class:`GuildSettingsCache`.
    level_rewards:
        A warmed :class:`LevelRewardCache`.
    """

    def __init__(
        self,
        cfg: RankwellConfig,
        engine: Engine,
        settings: GuildSettingsCache,
        level_rewards: LevelRewardCache,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True    # Privileged: prefix commands
        intents.members = True            # Privileged: role-gain tracking
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} — levels & leaderboards",
        )

        self.cfg = cfg
        self.engine = engine
        self.settings = settings
        self.level_rewards = level_rewards

        self.store = ExperienceStore(engine)
        self.guard = CooldownGuard()
        self.emitter = LevelUpEmitter()
        self.awards = AwardProcessor(
            self.store,
            settings,
            self.emitter,
            guard=self.guard,
            write_timeout=cfg.award_timeout_seconds,
        )
        self.ranker = LeaderboardRanker(engine)

        self.announcer = LevelUpAnnouncer(self)
        self.emitter.register(self.announcer)
        self.rewarder = LevelRoleRewarder(self)
        self.emitter.register(self.rewarder)

        self._tree_synced = False

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load every Cog extension before connecting.

        A broken Cog is logged and skipped so the rest of the bot still runs.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except commands.ExtensionError as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        self.announcer.start()
        logger.info("Announcement flush task started.")

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None
        logger.info(
            "Logged in as %s (ID: %s) — %d guild(s)",
            self.user.name, self.user.id, len(self.guilds),
        )

        if self._tree_synced:
            return
        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))
        self._tree_synced = True

    async def close(self) -> None:
        """Graceful shutdown: finish pending announcements, stop the flusher."""
        logger.info("Bot shutting down…")
        await self.emitter.drain()
        self.announcer.stop()
        await super().close()
