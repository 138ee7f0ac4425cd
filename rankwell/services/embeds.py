"""
rankwell.services.embeds — Discord embed builders
==================================================

All embed construction lives here so the announcer and cogs only supply
data.  Level math comes from :mod:`rankwell.engine.levels`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import discord

from rankwell.constants import LEVEL_UP_EMOJI, RANK_BADGES
from rankwell.engine.events import LevelUp
from rankwell.engine.levels import progress, progress_bar, rank_title
from rankwell.engine.rewards import LevelRewardConfig, RewardMode
from rankwell.engine.settings import GuildExperienceConfig
from rankwell.services.experience_store import ExperienceSnapshot
from rankwell.services.leaderboard_service import LeaderboardEntry, RankInfo


def build_level_up_embed(
    fact: LevelUp,
    display_name: str,
    avatar_url: str | None = None,
) -> discord.Embed:
    """Level-up celebration with @mention."""
    before_title = rank_title(fact.level_before)
    after_title = rank_title(fact.level_after)
    description = f"<@{fact.user_id}> reached **Level {fact.level_after}**!"
    if after_title != before_title:
        description += f"\nNew rank: **{after_title}**"

    embed = discord.Embed(
        title=f"{LEVEL_UP_EMOJI} Level Up!",
        description=description,
        color=discord.Color.gold(),
    )
    embed.add_field(name="Total XP", value=f"{fact.total_xp:,}", inline=True)
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    embed.set_footer(text=display_name)
    return embed


def build_profile_embed(
    display_name: str,
    avatar_url: str | None,
    snapshot: ExperienceSnapshot | None,
    rank: RankInfo | None,
) -> discord.Embed:
    """``/level`` card: level, progress bar, rank and activity counters."""
    total_xp = snapshot.total_xp if snapshot else 0
    prog = progress(total_xp)

    embed = discord.Embed(
        title=f"{display_name} — Level {prog.level}",
        description=(
            f"**{rank_title(prog.level)}**\n"
            f"{progress_bar(prog.percent)} {prog.percent:.0f}%\n"
            f"{prog.xp_into_level:,} / {prog.xp_for_next_level:,} XP "
            f"to Level {prog.level + 1}"
        ),
        color=discord.Color.blurple(),
    )
    embed.add_field(name="Total XP", value=f"{total_xp:,}", inline=True)
    embed.add_field(
        name="Rank",
        value=f"#{rank.position} of {rank.total_users}" if rank else "Unranked",
        inline=True,
    )
    if snapshot:
        embed.add_field(
            name="Activity",
            value=(
                f"\U0001f4ac {snapshot.messages_sent:,} messages\n"
                f"⌨️ {snapshot.commands_used:,} commands\n"
                f"\U0001f3ad {snapshot.roles_earned:,} roles\n"
                f"\U0001f3a7 {snapshot.voice_minutes:,} voice minutes"
            ),
            inline=False,
        )
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    return embed


def build_leaderboard_embed(
    guild_name: str,
    entries: Sequence[LeaderboardEntry],
    names: Mapping[int, str],
    *,
    page: int,
    total_pages: int,
) -> discord.Embed:
    """One page of the guild leaderboard."""
    embed = discord.Embed(
        title=f"\U0001f3c6 {guild_name} Leaderboard",
        color=discord.Color.gold(),
    )
    if not entries:
        embed.description = "No one has earned XP yet."
        return embed

    lines = []
    for entry in entries:
        badge = (
            RANK_BADGES[entry.position - 1]
            if entry.position <= len(RANK_BADGES)
            else f"`#{entry.position}`"
        )
        name = names.get(entry.user_id, f"User {entry.user_id}")
        lines.append(
            f"{badge} **{name}** — Lvl {entry.level} · {entry.total_xp:,} XP"
        )
    embed.description = "\n".join(lines)
    embed.set_footer(text=f"Page {page}/{total_pages}")
    return embed


def build_settings_embed(
    guild_name: str, cfg: GuildExperienceConfig
) -> discord.Embed:
    """Admin view of a guild's XP configuration."""

    def onoff(flag: bool) -> str:
        return "✅" if flag else "❌"

    embed = discord.Embed(
        title=f"⚙️ XP Settings — {guild_name}",
        description=f"XP system: {onoff(cfg.enabled)}",
        color=discord.Color.green() if cfg.enabled else discord.Color.red(),
    )
    embed.add_field(
        name=f"{onoff(cfg.message_xp)} Messages",
        value=(
            f"{cfg.message_xp_min}–{cfg.message_xp_max} XP\n"
            f"cooldown {cfg.message_cooldown}s"
        ),
    )
    embed.add_field(
        name=f"{onoff(cfg.command_xp)} Commands",
        value=f"base {cfg.command_xp_base} XP\ncooldown {cfg.command_cooldown}s",
    )
    embed.add_field(
        name=f"{onoff(cfg.role_xp)} Roles",
        value=f"{cfg.role_xp_amount} XP\ncooldown {cfg.role_cooldown}s",
    )
    embed.add_field(
        name=f"{onoff(cfg.voice_xp)} Voice",
        value=f"{cfg.voice_xp_amount} XP per tick\ncooldown {cfg.voice_cooldown}s",
    )
    channel = (
        f"<#{cfg.level_up_channel_id}>" if cfg.level_up_channel_id else "default"
    )
    embed.add_field(
        name=f"{onoff(cfg.level_up_messages)} Level-up messages",
        value=f"channel: {channel}",
        inline=False,
    )
    return embed


def build_rewards_embed(guild_name: str, cfg: LevelRewardConfig) -> discord.Embed:
    """Admin view of a guild's level reward roles."""
    mode = "Stack (keep every earned role)" if cfg.mode is RewardMode.STACK else (
        "Replace (keep only the highest earned role)"
    )
    embed = discord.Embed(
        title=f"🎁 Level Rewards — {guild_name}",
        description=f"Mode: **{mode}**",
        color=discord.Color.gold(),
    )
    if not cfg.rewards:
        embed.add_field(name="Rewards", value="No level rewards configured.", inline=False)
        return embed
    lines = [f"Level **{r.level}** → <@&{r.role_id}>" for r in cfg.rewards]
    embed.add_field(name="Rewards", value="\n".join(lines), inline=False)
    return embed
