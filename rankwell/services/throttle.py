"""
rankwell.services.throttle — Per-channel send throttle
=======================================================

Level-up bursts (a busy voice channel crossing a threshold together, a
mass role grant) can flood one channel.  :class:`ChannelThrottle` allows a
fixed number of sends per channel inside a sliding window and parks the
rest on a bounded backlog that a background task flushes as windows reopen.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict, deque
from collections.abc import Callable

import discord
from discord.abc import Messageable

logger = logging.getLogger(__name__)

Pending = tuple[Messageable, discord.Embed]


class ChannelThrottle:
    """Sliding-window limiter with a per-channel overflow backlog.

    - At most ``max_per_window`` sends per channel per ``window`` seconds.
    - Overflow waits in a backlog of at most ``max_backlog`` embeds per
      channel; the oldest entry is dropped when it is full.
    - :meth:`start` runs :meth:`flush` every ``flush_interval`` seconds.
    """

    def __init__(
        self,
        max_per_window: int = 3,
        window: float = 60.0,
        *,
        max_backlog: int = 25,
        flush_interval: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_per_window = max_per_window
        self.window = window
        self.max_backlog = max_backlog
        self.flush_interval = flush_interval
        self._clock = clock
        self._sent: dict[int, deque[float]] = {}
        self._backlog: dict[int, deque[Pending]] = defaultdict(deque)
        self._flush_task: asyncio.Task | None = None

    def _expire(self, channel_id: int, now: float) -> deque[float] | None:
        """Drop timestamps outside the window; forget the channel when none remain."""
        stamps = self._sent.get(channel_id)
        if stamps is None:
            return None
        while stamps and stamps[0] <= now - self.window:
            stamps.popleft()
        if not stamps:
            del self._sent[channel_id]
            return None
        return stamps

    def try_acquire(self, channel_id: int) -> bool:
        """Claim a send slot for *channel_id*; False when the window is full."""
        now = self._clock()
        stamps = self._expire(channel_id, now)
        if stamps is None:
            self._sent[channel_id] = deque([now])
            return True
        if len(stamps) >= self.max_per_window:
            return False
        stamps.append(now)
        return True

    def tracked_channels(self) -> int:
        """Number of channels with sends still inside the window."""
        return len(self._sent)

    def defer(self, channel: Messageable, embed: discord.Embed) -> None:
        channel_id = getattr(channel, "id", 0)
        backlog = self._backlog[channel_id]
        if len(backlog) >= self.max_backlog:
            backlog.popleft()
            logger.warning(
                "Announcement backlog full for channel %d; dropped oldest",
                channel_id,
            )
        backlog.append((channel, embed))

    def backlog_size(self, channel_id: int | None = None) -> int:
        if channel_id is not None:
            return len(self._backlog.get(channel_id, ()))
        return sum(len(q) for q in self._backlog.values())

    async def send(self, channel: Messageable, embed: discord.Embed) -> bool:
        """Send now if a slot is free, else defer.  True when sent immediately."""
        channel_id = getattr(channel, "id", 0)
        if not self.try_acquire(channel_id):
            self.defer(channel, embed)
            return False
        await self._deliver(channel_id, channel, embed)
        return True

    async def flush(self) -> int:
        """Deliver backlog entries whose channel has a free slot.  Returns count."""
        delivered = 0
        for channel_id, backlog in list(self._backlog.items()):
            while backlog and self.try_acquire(channel_id):
                channel, embed = backlog.popleft()
                await self._deliver(channel_id, channel, embed)
                delivered += 1
            if not backlog:
                self._backlog.pop(channel_id, None)
        now = self._clock()
        for channel_id in list(self._sent):
            self._expire(channel_id, now)
        return delivered

    async def _deliver(
        self, channel_id: int, channel: Messageable, embed: discord.Embed
    ) -> None:
        try:
            await channel.send(embed=embed)
        except discord.HTTPException:
            logger.exception("Failed to send announcement to channel %d", channel_id)

    # -------------------------------------------------------------------
    # Background flushing
    # -------------------------------------------------------------------
    def start(self) -> None:
        if self._flush_task is not None:
            return

        async def _flush_loop() -> None:
            while True:
                await asyncio.sleep(self.flush_interval)
                try:
                    await self.flush()
                except Exception:
                    logger.exception("Announcement flush error")

        self._flush_task = asyncio.get_running_loop().create_task(
            _flush_loop(), name="announce-flush"
        )

    def stop(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            self._flush_task = None
