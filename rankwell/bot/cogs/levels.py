"""
rankwell.bot.cogs.levels — Level & Leaderboard Commands
========================================================

Hybrid commands for members:
- /level [member] — level, progress to the next level, rank, activity
- /leaderboard [page] — the guild's ranking, one page at a time
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from rankwell.database.engine import run_db
from rankwell.services.embeds import build_leaderboard_embed, build_profile_embed

if TYPE_CHECKING:
    from rankwell.bot.core import RankwellBot


class Levels(commands.Cog, name="Levels"):
    """Level cards and leaderboards."""

    def __init__(self, bot: RankwellBot) -> None:
        self.bot = bot

    @commands.hybrid_command(  # type: ignore[arg-type]
        name="level",
        description="Show a member's level and progress.",
    )
    @commands.guild_only()
    @app_commands.describe(member="The member to look up (defaults to you)")
    async def level(self, ctx: commands.Context, member: discord.Member | None = None) -> None:
        guild_id = ctx.guild.id if ctx.guild else 0
        target = member or ctx.author

        snapshot = await run_db(self.bot.store.get, guild_id, target.id)
        rank = await run_db(self.bot.ranker.get_rank, guild_id, target.id)

        embed = build_profile_embed(
            target.display_name, target.display_avatar.url, snapshot, rank
        )
        await ctx.send(embed=embed)

    @commands.hybrid_command(  # type: ignore[arg-type]
        name="leaderboard",
        description="Show the server XP leaderboard.",
    )
    @commands.guild_only()
    @app_commands.describe(page="Page number (starts at 1)")
    async def leaderboard(self, ctx: commands.Context, page: int = 1) -> None:
        guild = ctx.guild
        if guild is None:
            return
        page_size = self.bot.cfg.leaderboard_page_size

        total = await run_db(self.bot.ranker.count_members, guild.id)
        total_pages = max(1, math.ceil(total / page_size))
        page = min(max(1, page), total_pages)

        entries = await run_db(
            self.bot.ranker.get_leaderboard,
            guild.id,
            page_size,
            (page - 1) * page_size,
        )
        names = {}
        for entry in entries:
            m = guild.get_member(entry.user_id)
            if m is not None:
                names[entry.user_id] = m.display_name

        embed = build_leaderboard_embed(
            guild.name, entries, names, page=page, total_pages=total_pages
        )
        await ctx.send(embed=embed)


async def setup(bot: RankwellBot) -> None:
    await bot.add_cog(Levels(bot))
