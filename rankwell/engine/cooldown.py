"""
rankwell.engine.cooldown — Per-source cooldown guard
=====================================================

Each (guild, user, source) triple has its own cooldown clock.  An award is
eligible when no earlier award is known or ``now - last >= cooldown``.

The guard keeps an in-memory mirror of last-award timestamps so the award
path can reject obvious repeats without touching the database.  The mirror
is only advanced through :meth:`CooldownGuard.record`, after a write has
committed.  The authoritative check is :meth:`CooldownGuard.eligibility_clause`,
evaluated by the store inside the same UPDATE that applies the XP.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_

from rankwell.engine.events import ActivitySource

if TYPE_CHECKING:
    from sqlalchemy.orm import InstrumentedAttribute
    from sqlalchemy.sql.elements import ColumnElement

logger = logging.getLogger(__name__)


def as_utc(moment: datetime) -> datetime:
    """Normalize *moment* to an aware UTC datetime.

    SQLite hands timestamps back naive; they are stored as UTC.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


class CooldownGuard:
    """Thread-safe tracker of last-award timestamps per source."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # (guild_id, user_id, source) → last award time (aware UTC)
        self._last_award: dict[tuple[int, int, ActivitySource], datetime] = {}

    def is_eligible(
        self,
        guild_id: int,
        user_id: int,
        source: ActivitySource,
        now: datetime,
        cooldown: float,
    ) -> bool:
        """True when *source* may award again at *now*."""
        with self._lock:
            last = self._last_award.get((guild_id, user_id, source))
        if last is None:
            return True
        return as_utc(now) - last >= timedelta(seconds=cooldown)

    def remaining(
        self,
        guild_id: int,
        user_id: int,
        source: ActivitySource,
        now: datetime,
        cooldown: float,
    ) -> float:
        """Seconds until *source* is eligible again (0.0 when eligible)."""
        with self._lock:
            last = self._last_award.get((guild_id, user_id, source))
        if last is None:
            return 0.0
        left = timedelta(seconds=cooldown) - (as_utc(now) - last)
        return max(0.0, left.total_seconds())

    def record(
        self, guild_id: int, user_id: int, source: ActivitySource, at: datetime
    ) -> None:
        """Mark *source* as consumed at *at*.  Call only after a committed write."""
        at = as_utc(at)
        key = (guild_id, user_id, source)
        with self._lock:
            current = self._last_award.get(key)
            if current is None or at > current:
                self._last_award[key] = at

    def forget(self, guild_id: int, user_id: int | None = None) -> None:
        """Drop mirrored timestamps for a member, or a whole guild."""
        with self._lock:
            doomed = [
                k for k in self._last_award
                if k[0] == guild_id and (user_id is None or k[1] == user_id)
            ]
            for k in doomed:
                del self._last_award[k]

    def prune(self, now: datetime, max_age: float) -> int:
        """Drop entries older than *max_age* seconds.  Returns how many."""
        cutoff = as_utc(now) - timedelta(seconds=max_age)
        with self._lock:
            stale = [k for k, t in self._last_award.items() if t <= cutoff]
            for k in stale:
                del self._last_award[k]
        if stale:
            logger.debug("Pruned %d expired cooldown entries", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_award)

    @staticmethod
    def eligibility_clause(
        column: InstrumentedAttribute, now: datetime, cooldown: float
    ) -> ColumnElement[bool]:
        """SQL form of :meth:`is_eligible` over a last-award column."""
        cutoff = as_utc(now) - timedelta(seconds=cooldown)
        return or_(column.is_(None), column <= cutoff)
