"""
rankwell.services.announcement_service — Level-up Announcements
================================================================

:class:`LevelUpAnnouncer` is the notifier registered with the
:class:`~rankwell.services.level_up_emitter.LevelUpEmitter`.  It owns guild
preference gating, channel resolution and throttle-safe delivery.

Embed construction lives in :mod:`rankwell.services.embeds`.
Throttle logic lives in :mod:`rankwell.services.throttle`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable

from rankwell.engine.events import LevelUp
from rankwell.services.embeds import build_level_up_embed
from rankwell.services.throttle import ChannelThrottle

if TYPE_CHECKING:
    from rankwell.bot.core import RankwellBot

logger = logging.getLogger(__name__)


class LevelUpAnnouncer:
    """Async callable ``announcer(fact)`` posting level-up embeds."""

    def __init__(
        self, bot: RankwellBot, throttle: ChannelThrottle | None = None
    ) -> None:
        self.bot = bot
        self.throttle = throttle or ChannelThrottle()

    def start(self) -> None:
        """Start flushing the overflow backlog.  Call once the loop runs."""
        self.throttle.start()

    def stop(self) -> None:
        self.throttle.stop()

    # -------------------------------------------------------------------
    # Channel resolution
    # -------------------------------------------------------------------
    def resolve_channel(
        self, guild: discord.Guild, channel_id: int | None
    ) -> Messageable | None:
        """Pick the announcement channel for *guild*.

        Priority: guild setting → ``config.yaml`` fallback → system channel.
        """
        for candidate in (channel_id, self.bot.cfg.announce_channel_id):
            if not candidate:
                continue
            ch = guild.get_channel(candidate)
            if ch is not None and isinstance(ch, Messageable):
                return ch
            logger.debug(
                "Announcement channel %d not found in guild %d", candidate, guild.id
            )
        return guild.system_channel

    # -------------------------------------------------------------------
    # Notifier entry point
    # -------------------------------------------------------------------
    async def __call__(self, fact: LevelUp) -> None:
        cfg = self.bot.settings.get(fact.guild_id)
        if not cfg.level_up_messages:
            return

        guild = self.bot.get_guild(fact.guild_id)
        if guild is None:
            logger.debug("Level-up for unknown guild %d dropped", fact.guild_id)
            return

        channel = self.resolve_channel(guild, cfg.level_up_channel_id)
        if channel is None:
            logger.debug(
                "No announcement channel in guild %d; level-up not posted",
                fact.guild_id,
            )
            return

        member = guild.get_member(fact.user_id)
        if member is not None:
            display_name = member.display_name
            avatar_url = member.display_avatar.url
        else:
            display_name = f"User {fact.user_id}"
            avatar_url = None

        embed = build_level_up_embed(fact, display_name, avatar_url)
        await self.throttle.send(channel, embed)
