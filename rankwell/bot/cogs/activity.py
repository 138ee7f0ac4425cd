"""
rankwell.bot.cogs.activity — Message, Command & Role XP
========================================================

Normalizes gateway events into award calls:

- ``on_message``                → ``message``
- ``on_app_command_completion`` → ``command`` with ``{"command": name}``
- ``on_member_update``          → ``role``, once per newly gained role
  (level reward roles excluded, they are a consequence of XP, not a source)
- ``on_member_join``            → reward roles re-synced to the stored level

Bots and DMs are ignored.  Cooldowns, per-guild toggles and level-up
announcements are handled by the award pipeline; a failed write is logged
here and the event is dropped.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import discord
from discord import app_commands
from discord.ext import commands, tasks

from rankwell.database.engine import run_db
from rankwell.engine.errors import AwardPersistenceError
from rankwell.engine.events import ActivitySource

if TYPE_CHECKING:
    from rankwell.bot.core import RankwellBot

logger = logging.getLogger(__name__)

# Cooldown mirror entries older than this are dropped.  A dropped entry only
# costs one extra round trip; the database predicate still enforces it.
GUARD_MAX_AGE_SECONDS = 3600


class Activity(commands.Cog, name="Activity"):
    """Awards XP for messages, slash commands and role gains."""

    def __init__(self, bot: RankwellBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self._prune_guard.start()

    async def cog_unload(self) -> None:
        self._prune_guard.cancel()

    @tasks.loop(minutes=10)
    async def _prune_guard(self) -> None:
        self.bot.guard.prune(datetime.now(UTC), GUARD_MAX_AGE_SECONDS)

    async def _award(
        self,
        guild_id: int,
        user_id: int,
        source: ActivitySource,
        context: dict[str, Any] | None = None,
    ) -> None:
        try:
            await self.bot.awards.award(guild_id, user_id, source, context)
        except AwardPersistenceError:
            logger.exception(
                "Dropped %s award for user %d in guild %d",
                source.value, user_id, guild_id,
            )

    # -------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        await self._award(message.guild.id, message.author.id, ActivitySource.MESSAGE)

    @commands.Cog.listener()
    async def on_app_command_completion(
        self,
        interaction: discord.Interaction,
        command: app_commands.Command | app_commands.ContextMenu,
    ) -> None:
        if interaction.guild_id is None or interaction.user.bot:
            return
        await self._award(
            interaction.guild_id,
            interaction.user.id,
            ActivitySource.COMMAND,
            {"command": command.name},
        )

    @commands.Cog.listener()
    async def on_member_update(
        self, before: discord.Member, after: discord.Member
    ) -> None:
        if after.bot:
            return
        reward_roles = self.bot.level_rewards.get(after.guild.id).role_ids
        gained = {r for r in set(after.roles) - set(before.roles) if r.id not in reward_roles}
        for role in sorted(gained, key=lambda r: r.id):
            logger.debug(
                "Member %d gained role %s in guild %d",
                after.id, role.name, after.guild.id,
            )
            await self._award(
                after.guild.id, after.id, ActivitySource.ROLE, {"role_id": role.id}
            )

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        if member.bot or not self.bot.level_rewards.get(member.guild.id).rewards:
            return
        snapshot = await run_db(self.bot.store.get, member.guild.id, member.id)
        if snapshot is None:
            return
        changes = await self.bot.rewarder.sync_member(member, snapshot.level)
        if changes.added:
            logger.info(
                "Restored %d reward role(s) for returning member %d in guild %d",
                len(changes.added), member.id, member.guild.id,
            )


async def setup(bot: RankwellBot) -> None:
    await bot.add_cog(Activity(bot))
