"""
rankwell.services.level_up_emitter — Level-up fact delivery
============================================================

Thin boundary between the award path and whoever reacts to level-ups (the
channel announcer, the reward-role granter).  It holds no business logic:
:meth:`LevelUpEmitter.emit` schedules one delivery per registered notifier on
the running event loop and returns immediately, so a slow or failing
notifier can never delay or undo an award, nor starve another notifier.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from rankwell.engine.events import LevelUp

logger = logging.getLogger(__name__)

Notifier = Callable[[LevelUp], Awaitable[None]]


class LevelUpEmitter:
    """Fire-and-forget fan-out of :class:`LevelUp` facts."""

    def __init__(self, *notifiers: Notifier) -> None:
        self._notifiers: list[Notifier] = list(notifiers)
        self._pending: set[asyncio.Task] = set()

    def register(self, notifier: Notifier) -> None:
        """Add *notifier*; registering the same callable twice is a no-op."""
        if notifier not in self._notifiers:
            self._notifiers.append(notifier)

    def unregister(self, notifier: Notifier) -> None:
        if notifier in self._notifiers:
            self._notifiers.remove(notifier)

    @property
    def has_notifier(self) -> bool:
        return bool(self._notifiers)

    def emit(self, fact: LevelUp) -> None:
        """Hand *fact* to every notifier without waiting for them."""
        if not self._notifiers:
            logger.debug(
                "No notifier registered — dropping level-up for user %d (%d → %d)",
                fact.user_id, fact.level_before, fact.level_after,
            )
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop — dropping level-up for user %d", fact.user_id
            )
            return

        for notifier in list(self._notifiers):
            task = loop.create_task(
                self._deliver(notifier, fact),
                name=f"level-up-{fact.guild_id}-{fact.user_id}",
            )
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, notifier: Notifier, fact: LevelUp) -> None:
        try:
            await notifier(fact)
        except Exception:
            logger.exception(
                "Level-up notifier %r failed for user %d in guild %d",
                notifier, fact.user_id, fact.guild_id,
            )

    async def drain(self) -> None:
        """Wait for every in-flight delivery (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
