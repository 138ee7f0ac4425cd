"""
rankwell.services.role_reward_service — Level Reward Roles
===========================================================

:class:`LevelRoleRewarder` is the second notifier registered with the
:class:`~rankwell.services.level_up_emitter.LevelUpEmitter`.  On every
level-up it asks :func:`~rankwell.engine.rewards.plan_level_up` which reward
roles to grant (and, in replace mode, which to take away) and applies the
plan through the Discord API.

:meth:`LevelRoleRewarder.sync_member` re-aligns one member's reward roles
with their current level.  It is used when a member rejoins and after an
admin changes XP directly.

Missing roles, missing members and permission errors are logged and
skipped; a reward problem never affects the award itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import discord

from rankwell.engine.events import LevelUp
from rankwell.engine.rewards import RolePlan, plan_level_up, plan_sync

if TYPE_CHECKING:
    from rankwell.bot.core import RankwellBot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RoleChanges:
    """Roles actually added/removed on Discord."""

    added: list[discord.Role] = field(default_factory=list)
    removed: list[discord.Role] = field(default_factory=list)


class LevelRoleRewarder:
    """Async callable ``rewarder(fact)`` granting level reward roles."""

    def __init__(self, bot: RankwellBot) -> None:
        self.bot = bot

    async def _resolve_member(
        self, guild: discord.Guild, user_id: int
    ) -> discord.Member | None:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            logger.debug("Member %d left guild %d before reward roles", user_id, guild.id)
        except discord.HTTPException:
            logger.warning(
                "Could not fetch member %d in guild %d for level rewards",
                user_id, guild.id, exc_info=True,
            )
        return None

    async def apply(
        self,
        guild: discord.Guild,
        member: discord.Member,
        plan: RolePlan,
        *,
        reason: str,
    ) -> RoleChanges:
        """Carry out *plan* on *member*, skipping roles that cannot be changed."""
        changes = RoleChanges()
        for reward in plan.add:
            role = guild.get_role(reward.role_id)
            if role is None:
                logger.warning(
                    "Reward role %d (level %d) no longer exists in guild %d",
                    reward.role_id, reward.level, guild.id,
                )
                continue
            try:
                await member.add_roles(role, reason=f"{reason} (level {reward.level})")
            except discord.HTTPException:
                logger.warning(
                    "Could not add reward role %d to member %d in guild %d",
                    role.id, member.id, guild.id, exc_info=True,
                )
                continue
            changes.added.append(role)

        for reward in plan.remove:
            role = guild.get_role(reward.role_id)
            if role is None:
                continue
            try:
                await member.remove_roles(role, reason=reason)
            except discord.HTTPException:
                logger.warning(
                    "Could not remove reward role %d from member %d in guild %d",
                    role.id, member.id, guild.id, exc_info=True,
                )
                continue
            changes.removed.append(role)
        return changes

    # -------------------------------------------------------------------
    # Notifier entry point
    # -------------------------------------------------------------------
    async def __call__(self, fact: LevelUp) -> None:
        cfg = self.bot.level_rewards.get(fact.guild_id)
        if not cfg.rewards:
            return

        guild = self.bot.get_guild(fact.guild_id)
        if guild is None:
            return
        member = await self._resolve_member(guild, fact.user_id)
        if member is None:
            return

        held = {role.id for role in member.roles}
        plan = plan_level_up(cfg, fact.level_before, fact.level_after, held)
        if not plan:
            return

        changes = await self.apply(guild, member, plan, reason="Level reward")
        if changes.added:
            logger.info(
                "Level rewards granted to user %d in guild %d: %s",
                fact.user_id, fact.guild_id,
                ", ".join(role.name for role in changes.added),
            )

    # -------------------------------------------------------------------
    # Re-alignment
    # -------------------------------------------------------------------
    async def sync_member(self, member: discord.Member, level: int) -> RoleChanges:
        """Make *member*'s reward roles match *level* exactly."""
        cfg = self.bot.level_rewards.get(member.guild.id)
        if not cfg.rewards:
            return RoleChanges()
        plan = plan_sync(cfg, level, {role.id for role in member.roles})
        if not plan:
            return RoleChanges()
        return await self.apply(member.guild, member, plan, reason="Level reward sync")
