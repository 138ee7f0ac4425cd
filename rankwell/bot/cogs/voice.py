"""
rankwell.bot.cogs.voice — Voice Presence XP
============================================

Tracks time members spend in voice and periodically awards ``voice`` XP.

Every ``voice_tick_seconds`` the loop walks each guild's voice channels.  A
member accrues whole minutes from the moment they became eligible; each
award credits the minutes accrued so far and restarts the clock.  While the
guild's voice cooldown is still running the minutes keep accruing.

Not counted: bots, self-deafened members, and the guild's AFK channel.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from rankwell.engine.errors import AwardPersistenceError
from rankwell.engine.events import ActivitySource

if TYPE_CHECKING:
    from rankwell.bot.core import RankwellBot

logger = logging.getLogger(__name__)


def is_counted(member: discord.Member, state: discord.VoiceState | None) -> bool:
    """True when *member* in voice *state* earns presence XP."""
    if member.bot or state is None or state.channel is None:
        return False
    if state.self_deaf or state.deaf:
        return False
    afk = member.guild.afk_channel
    return afk is None or state.channel.id != afk.id


class Voice(commands.Cog, name="Voice"):
    """Tracks voice channel presence and awards XP on ticks."""

    def __init__(self, bot: RankwellBot) -> None:
        self.bot = bot
        # (guild_id, user_id) → monotonic time of the last credited minute
        self._sessions: dict[tuple[int, int], float] = {}

    async def cog_load(self) -> None:
        self.voice_tick.change_interval(seconds=self.bot.cfg.voice_tick_seconds)
        self.voice_tick.start()

    async def cog_unload(self) -> None:
        self.voice_tick.cancel()

    # -------------------------------------------------------------------
    # Session tracking
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        key = (member.guild.id, member.id)
        was = is_counted(member, before)
        now = is_counted(member, after)
        if now and not was:
            self._sessions[key] = time.monotonic()
            logger.debug("Voice session started for %d in guild %d", member.id, member.guild.id)
        elif was and not now:
            self._sessions.pop(key, None)
            logger.debug("Voice session ended for %d in guild %d", member.id, member.guild.id)

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        for key in [k for k in self._sessions if k[0] == guild.id]:
            del self._sessions[key]

    # -------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------
    @tasks.loop(seconds=60)
    async def voice_tick(self) -> None:
        """Award voice XP to every counted member with at least one minute."""
        now = time.monotonic()
        present: set[tuple[int, int]] = set()

        for guild in self.bot.guilds:
            if not self.bot.settings.get(guild.id).source_enabled(ActivitySource.VOICE):
                continue
            for vc in guild.voice_channels:
                for member in vc.members:
                    if not is_counted(member, member.voice):
                        continue
                    key = (guild.id, member.id)
                    present.add(key)
                    started = self._sessions.setdefault(key, now)
                    minutes = int((now - started) // 60)
                    if minutes < 1:
                        continue
                    await self._credit(key, minutes, started)

        # Members who left while the gateway event was missed.
        for key in [k for k in self._sessions if k not in present]:
            del self._sessions[key]

    async def _credit(self, key: tuple[int, int], minutes: int, started: float) -> None:
        guild_id, user_id = key
        try:
            result = await self.bot.awards.award(
                guild_id, user_id, ActivitySource.VOICE, {"minutes": minutes}
            )
        except AwardPersistenceError:
            logger.exception(
                "Dropped voice award for user %d in guild %d", user_id, guild_id
            )
            return
        if result is not None and key in self._sessions:
            self._sessions[key] = started + minutes * 60

    @voice_tick.before_loop
    async def before_voice_tick(self) -> None:
        await self.bot.wait_until_ready()


async def setup(bot: RankwellBot) -> None:
    await bot.add_cog(Voice(bot))
