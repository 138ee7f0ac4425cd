"""
rankwell.services.experience_store — Experience Record Persistence
===================================================================

One ``user_experience`` row per (guild, member).  Every mutation is a single
transaction built around an in-place SQL increment, never "read total, add in
Python, write back":

* :meth:`ExperienceStore.apply_award` inserts the row if it is missing, then
  runs one conditional ``UPDATE … RETURNING`` that adds the XP, bumps the
  source counter and stamps the source's cooldown clock — but only matches
  when the cooldown predicate holds.  Concurrent awards for the same member
  serialize on the row and none of them is lost.
* Admin adjustments lock the row first and clamp the total at zero.

All methods are synchronous; call them through
:func:`~rankwell.database.engine.run_db` (reads) or
:func:`~rankwell.database.engine.run_db_bounded` (award writes).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Engine, delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rankwell.database.engine import get_session
from rankwell.database.models import UserExperience
from rankwell.engine.cooldown import CooldownGuard, as_utc
from rankwell.engine.events import SOURCE_COLUMNS, ActivitySource
from rankwell.engine.levels import level_for_xp

if TYPE_CHECKING:
    from rankwell.database.engine import CommitGate

logger = logging.getLogger(__name__)

# Dialects with a native "insert, ignore duplicates" statement
_INSERT_IGNORE = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True, slots=True)
class ExperienceSnapshot:
    """Detached, read-only copy of a ``user_experience`` row."""

    guild_id: int
    user_id: int
    total_xp: int
    messages_sent: int
    commands_used: int
    roles_earned: int
    voice_minutes: int
    last_award_at: dict[ActivitySource, datetime | None]
    last_updated: datetime | None

    @property
    def level(self) -> int:
        return level_for_xp(self.total_xp)

    @classmethod
    def from_row(cls, row: UserExperience) -> ExperienceSnapshot:
        last_award_at = {}
        for source, (_counter, last_col) in SOURCE_COLUMNS.items():
            value = getattr(row, last_col)
            last_award_at[source] = as_utc(value) if value is not None else None
        return cls(
            guild_id=row.guild_id,
            user_id=row.user_id,
            total_xp=row.total_xp,
            messages_sent=row.messages_sent,
            commands_used=row.commands_used,
            roles_earned=row.roles_earned,
            voice_minutes=row.voice_minutes,
            last_award_at=last_award_at,
            last_updated=as_utc(row.last_updated) if row.last_updated else None,
        )


@dataclass(frozen=True, slots=True)
class XPAdjustment:
    """Before/after totals of an admin XP adjustment."""

    xp_before: int
    xp_after: int

    @property
    def level_before(self) -> int:
        return level_for_xp(self.xp_before)

    @property
    def level_after(self) -> int:
        return level_for_xp(self.xp_after)


class ExperienceStore:
    """Atomic access to ``user_experience`` rows."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get(self, guild_id: int, user_id: int) -> ExperienceSnapshot | None:
        with Session(self._engine) as session:
            row = session.get(UserExperience, (guild_id, user_id))
            return ExperienceSnapshot.from_row(row) if row else None

    # -------------------------------------------------------------------
    # Award write
    # -------------------------------------------------------------------
    def apply_award(
        self,
        guild_id: int,
        user_id: int,
        source: ActivitySource,
        delta: int,
        *,
        now: datetime,
        cooldown: float,
        counter_step: int = 1,
        gate: CommitGate | None = None,
    ) -> int | None:
        """Apply one award atomically.

        Returns the new ``total_xp``, or None when the cooldown for *source*
        had not elapsed at *now* (nothing is written in that case).
        """
        counter_name, last_name = SOURCE_COLUMNS[source]
        counter_col = getattr(UserExperience, counter_name)
        last_col = getattr(UserExperience, last_name)
        now = as_utc(now)

        session = Session(self._engine)
        try:
            self._insert_if_absent(session, guild_id, user_id, now)
            row = session.execute(
                update(UserExperience)
                .where(
                    UserExperience.guild_id == guild_id,
                    UserExperience.user_id == user_id,
                    CooldownGuard.eligibility_clause(last_col, now, cooldown),
                )
                .values(
                    {
                        "total_xp": UserExperience.total_xp + delta,
                        counter_name: counter_col + counter_step,
                        last_name: now,
                        "last_updated": now,
                    }
                )
                .returning(UserExperience.total_xp)
                .execution_options(synchronize_session=False)
            ).first()

            if row is None:
                session.rollback()
                return None

            if gate is None:
                session.commit()
            else:
                gate.commit(session)
            return row[0]
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _insert_if_absent(
        self, session: Session, guild_id: int, user_id: int, now: datetime
    ) -> None:
        """Create an empty record unless one exists (race-safe)."""
        values = {
            "guild_id": guild_id,
            "user_id": user_id,
            "total_xp": 0,
            "messages_sent": 0,
            "commands_used": 0,
            "roles_earned": 0,
            "voice_minutes": 0,
            "last_updated": now,
        }
        insert = _INSERT_IGNORE.get(session.get_bind().dialect.name)
        if insert is not None:
            session.execute(
                insert(UserExperience)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["guild_id", "user_id"])
            )
            return

        # Generic fallback: let the primary key arbitrate inside a SAVEPOINT.
        if session.get(UserExperience, (guild_id, user_id)) is not None:
            return
        try:
            with session.begin_nested():
                session.add(UserExperience(**values))
                session.flush()
        except IntegrityError:
            # A concurrent award created the row; the UPDATE applies to it.
            pass

    # -------------------------------------------------------------------
    # Administrative mutations
    # -------------------------------------------------------------------
    def adjust_xp(
        self, guild_id: int, user_id: int, amount: int, *, now: datetime
    ) -> XPAdjustment:
        """Add (or, if negative, remove) XP; the total never drops below 0.

        Counters and cooldown clocks are left alone.  A removal (or zero)
        aimed at a member without a record is a no-op; records are only
        created by an actual gain.
        """
        now = as_utc(now)
        with get_session(self._engine) as session:
            if amount <= 0:
                exists = session.scalar(
                    select(UserExperience.user_id).where(
                        UserExperience.guild_id == guild_id,
                        UserExperience.user_id == user_id,
                    )
                )
                if exists is None:
                    return XPAdjustment(xp_before=0, xp_after=0)
            else:
                self._insert_if_absent(session, guild_id, user_id, now)
            # No-op UPDATE takes the row lock and reads the current total.
            before = session.execute(
                update(UserExperience)
                .where(
                    UserExperience.guild_id == guild_id,
                    UserExperience.user_id == user_id,
                )
                .values(total_xp=UserExperience.total_xp)
                .returning(UserExperience.total_xp)
                .execution_options(synchronize_session=False)
            ).scalar_one()
            after = max(0, before + amount)
            session.execute(
                update(UserExperience)
                .where(
                    UserExperience.guild_id == guild_id,
                    UserExperience.user_id == user_id,
                )
                .values(total_xp=after, last_updated=now)
                .execution_options(synchronize_session=False)
            )
        logger.info(
            "Adjusted XP for user %d in guild %d: %d → %d",
            user_id, guild_id, before, after,
        )
        return XPAdjustment(xp_before=before, xp_after=after)

    def reset_user(self, guild_id: int, user_id: int) -> bool:
        """Delete one member's record.  Returns True if it existed."""
        with get_session(self._engine) as session:
            result = session.execute(
                delete(UserExperience).where(
                    UserExperience.guild_id == guild_id,
                    UserExperience.user_id == user_id,
                )
            )
            removed = result.rowcount > 0
        if removed:
            logger.info("Reset XP for user %d in guild %d", user_id, guild_id)
        return removed

    def reset_guild(self, guild_id: int) -> int:
        """Delete every record of *guild_id*.  Returns the number removed."""
        with get_session(self._engine) as session:
            result = session.execute(
                delete(UserExperience).where(UserExperience.guild_id == guild_id)
            )
            removed = result.rowcount
        logger.info("Removed %d XP record(s) for guild %d", removed, guild_id)
        return removed
