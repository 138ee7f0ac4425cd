"""
rankwell.bot.cogs.admin — Server XP Administration
===================================================

Slash commands for members with **Manage Server**:
- /xp-settings — view the guild's XP configuration
- /xp-toggle   — switch the system, a source, or level-up messages on/off
- /xp-config   — set a numeric amount or cooldown
- /xp-channel  — choose (or clear) the level-up announcement channel
- /xp-give     — add or remove XP for a member (clamped at zero)
- /xp-reset    — wipe one member's record, or the whole guild's
- /xp-reward add|remove|list|mode|sync — roles granted at levels

Replies are ephemeral.  Direct XP changes re-sync the member's reward roles.
Leaving a guild deletes its records, settings and reward table.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from rankwell.database.engine import run_db
from rankwell.engine.errors import ValidationError
from rankwell.engine.rewards import RewardMode
from rankwell.services.embeds import build_rewards_embed, build_settings_embed

if TYPE_CHECKING:
    from rankwell.bot.core import RankwellBot

logger = logging.getLogger(__name__)

TOGGLES: dict[str, str] = {
    "XP system": "enabled",
    "Message XP": "message_xp",
    "Command XP": "command_xp",
    "Role XP": "role_xp",
    "Voice XP": "voice_xp",
    "Level-up messages": "level_up_messages",
}

NUMERIC_SETTINGS: tuple[str, ...] = (
    "message_xp_min",
    "message_xp_max",
    "command_xp_base",
    "role_xp_amount",
    "voice_xp_amount",
    "message_cooldown",
    "command_cooldown",
    "role_cooldown",
    "voice_cooldown",
)


def manage_guild_only(func):
    """Restrict a slash command to guild members with Manage Server."""
    func = app_commands.checks.has_permissions(manage_guild=True)(func)
    func = app_commands.default_permissions(manage_guild=True)(func)
    return app_commands.guild_only()(func)


def _guild_name(interaction: discord.Interaction) -> str:
    return interaction.guild.name if interaction.guild else "this server"


class Admin(commands.Cog, name="Admin"):
    """Per-guild XP administration."""

    reward = app_commands.Group(
        name="xp-reward",
        description="Roles granted when members reach a level.",
        guild_only=True,
        default_permissions=discord.Permissions(manage_guild=True),
    )

    def __init__(self, bot: RankwellBot) -> None:
        self.bot = bot

    async def _update(
        self, interaction: discord.Interaction, **changes: object
    ) -> None:
        guild_id = interaction.guild_id or 0
        try:
            cfg = await run_db(self.bot.settings.update, guild_id, **changes)
        except ValidationError as exc:
            await interaction.response.send_message(f"⚠️ {exc}", ephemeral=True)
            return
        logger.info(
            "Guild %d settings changed by %s: %s", guild_id, interaction.user, changes
        )
        await interaction.response.send_message(
            embed=build_settings_embed(_guild_name(interaction), cfg), ephemeral=True
        )

    async def _resync(self, member: discord.Member, level: int) -> None:
        changes = await self.bot.rewarder.sync_member(member, level)
        if changes.added or changes.removed:
            logger.info(
                "Re-synced reward roles of %d in guild %d: +%d -%d",
                member.id, member.guild.id, len(changes.added), len(changes.removed),
            )

    # -------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------
    @app_commands.command(name="xp-settings", description="Show this server's XP settings.")
    @manage_guild_only
    async def xp_settings(self, interaction: discord.Interaction) -> None:
        cfg = self.bot.settings.get(interaction.guild_id or 0)
        await interaction.response.send_message(
            embed=build_settings_embed(_guild_name(interaction), cfg), ephemeral=True
        )

    @app_commands.command(name="xp-toggle", description="Turn an XP feature on or off.")
    @manage_guild_only
    @app_commands.describe(feature="What to switch", enabled="On or off")
    @app_commands.choices(
        feature=[app_commands.Choice(name=label, value=key) for label, key in TOGGLES.items()]
    )
    async def xp_toggle(
        self, interaction: discord.Interaction, feature: str, enabled: bool
    ) -> None:
        await self._update(interaction, **{feature: enabled})

    @app_commands.command(name="xp-config", description="Set an XP amount or cooldown (seconds).")
    @manage_guild_only
    @app_commands.describe(setting="Setting to change", value="New value (>= 0)")
    @app_commands.choices(
        setting=[
            app_commands.Choice(name=name.replace("_", " "), value=name)
            for name in NUMERIC_SETTINGS
        ]
    )
    async def xp_config(
        self,
        interaction: discord.Interaction,
        setting: str,
        value: app_commands.Range[int, 0, 1_000_000],
    ) -> None:
        await self._update(interaction, **{setting: value})

    @app_commands.command(name="xp-channel", description="Set the level-up announcement channel.")
    @manage_guild_only
    @app_commands.describe(channel="Announcement channel (leave empty for the default)")
    async def xp_channel(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel | None = None,
    ) -> None:
        await self._update(
            interaction, level_up_channel_id=channel.id if channel else None
        )

    # -------------------------------------------------------------------
    # Member records
    # -------------------------------------------------------------------
    @app_commands.command(name="xp-give", description="Add (or remove, if negative) XP for a member.")
    @manage_guild_only
    @app_commands.describe(member="Recipient", amount="XP to add; negative removes")
    async def xp_give(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        amount: app_commands.Range[int, -1_000_000, 1_000_000],
    ) -> None:
        if member.bot:
            await interaction.response.send_message(
                "⚠️ Bots don't earn XP.", ephemeral=True
            )
            return

        guild_id = interaction.guild_id or 0
        change = await self.bot.awards.adjust_xp(guild_id, member.id, amount)
        logger.info(
            "%s adjusted XP of %d in guild %d by %d (%d → %d)",
            interaction.user, member.id, guild_id, amount,
            change.xp_before, change.xp_after,
        )
        await interaction.response.send_message(
            f"✅ {member.mention}: {change.xp_before:,} → {change.xp_after:,} XP "
            f"(Level {change.level_before} → {change.level_after})",
            ephemeral=True,
        )
        if change.level_before != change.level_after:
            await self._resync(member, change.level_after)

    @app_commands.command(name="xp-reset", description="Reset XP for a member or the whole server.")
    @manage_guild_only
    @app_commands.describe(
        member="Member to reset (omit to reset everyone)",
        confirm="Required to reset the whole server",
    )
    async def xp_reset(
        self,
        interaction: discord.Interaction,
        member: discord.Member | None = None,
        confirm: bool = False,
    ) -> None:
        guild_id = interaction.guild_id or 0

        if member is not None:
            removed = await self.bot.awards.reset_user(guild_id, member.id)
            msg = (
                f"✅ Reset {member.mention}." if removed
                else f"{member.mention} had no XP record."
            )
        elif not confirm:
            msg = "⚠️ Pass `confirm: True` to reset every member of this server."
        else:
            count = await self.bot.awards.reset_guild(guild_id)
            logger.warning("%s reset XP for guild %d (%d records)", interaction.user, guild_id, count)
            msg = f"✅ Reset {count:,} member record(s)."
        await interaction.response.send_message(msg, ephemeral=True)
        if member is not None:
            await self._resync(member, 0)

    # -------------------------------------------------------------------
    # Level rewards
    # -------------------------------------------------------------------
    async def _edit_rewards(
        self, interaction: discord.Interaction, action: str, func, *args
    ) -> None:
        guild_id = interaction.guild_id or 0
        try:
            cfg = await run_db(func, guild_id, *args)
        except ValidationError as exc:
            await interaction.response.send_message(f"⚠️ {exc}", ephemeral=True)
            return
        logger.info(
            "Guild %d level rewards changed by %s: %s %s",
            guild_id, interaction.user, action, args,
        )
        await interaction.response.send_message(
            embed=build_rewards_embed(_guild_name(interaction), cfg), ephemeral=True
        )

    @reward.command(name="add", description="Grant a role when members reach a level.")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.describe(level="Level that earns the role", role="Role to grant")
    async def reward_add(
        self,
        interaction: discord.Interaction,
        level: app_commands.Range[int, 1, 1000],
        role: discord.Role,
    ) -> None:
        if not role.is_assignable():
            await interaction.response.send_message(
                f"⚠️ I can't assign {role.mention}. Move my role above it "
                "and pick a regular (non-managed) role.",
                ephemeral=True,
            )
            return
        await self._edit_rewards(
            interaction, "add", self.bot.level_rewards.add_reward, level, role.id
        )

    @reward.command(name="remove", description="Stop granting a role at a level.")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.describe(level="Level of the reward", role="Role of the reward")
    async def reward_remove(
        self,
        interaction: discord.Interaction,
        level: app_commands.Range[int, 1, 1000],
        role: discord.Role,
    ) -> None:
        await self._edit_rewards(
            interaction, "remove", self.bot.level_rewards.remove_reward, level, role.id
        )

    @reward.command(name="list", description="Show this server's level rewards.")
    @app_commands.checks.has_permissions(manage_guild=True)
    async def reward_list(self, interaction: discord.Interaction) -> None:
        cfg = self.bot.level_rewards.get(interaction.guild_id or 0)
        await interaction.response.send_message(
            embed=build_rewards_embed(_guild_name(interaction), cfg), ephemeral=True
        )

    @reward.command(name="mode", description="Keep every earned reward role, or only the highest.")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.choices(
        mode=[
            app_commands.Choice(name="Stack — keep every earned role", value=RewardMode.STACK.value),
            app_commands.Choice(name="Replace — keep only the highest", value=RewardMode.REPLACE.value),
        ]
    )
    async def reward_mode(self, interaction: discord.Interaction, mode: str) -> None:
        await self._edit_rewards(
            interaction, "mode", self.bot.level_rewards.set_mode, mode
        )

    @reward.command(name="sync", description="Fix a member's reward roles to match their level.")
    @app_commands.checks.has_permissions(manage_guild=True)
    @app_commands.describe(member="Member to re-sync")
    async def reward_sync(
        self, interaction: discord.Interaction, member: discord.Member
    ) -> None:
        snapshot = await run_db(self.bot.store.get, interaction.guild_id or 0, member.id)
        level = snapshot.level if snapshot else 0
        changes = await self.bot.rewarder.sync_member(member, level)
        await interaction.response.send_message(
            f"✅ {member.mention} (Level {level}): "
            f"+{len(changes.added)} / -{len(changes.removed)} reward role(s).",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # Guild lifecycle
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        count = await self.bot.awards.reset_guild(guild.id)
        await run_db(self.bot.settings.evict, guild.id)
        await run_db(self.bot.level_rewards.evict, guild.id)
        logger.info(
            "Left guild %d — removed %d record(s), settings and level rewards",
            guild.id, count,
        )

    # -------------------------------------------------------------------
    # Error handler for missing permissions
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "🔒 You need the Manage Server permission to use this command.",
                ephemeral=True,
            )
        else:
            raise error


async def setup(bot: RankwellBot) -> None:
    await bot.add_cog(Admin(bot))
