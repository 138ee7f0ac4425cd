"""
rankwell.services.leaderboard_service — Guild Rankings
=======================================================

Read-only views over ``user_experience``.  Every view uses the same total
order — ``total_xp`` descending, then ``user_id`` ascending — so pages,
ranks and repeated calls always agree.

Reads run in their own short session and take no locks; a read racing an
award may see the member's previous total.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine, and_, func, or_, select
from sqlalchemy.orm import Session

from rankwell.database.models import UserExperience
from rankwell.engine.errors import ValidationError
from rankwell.engine.levels import level_for_xp

LEADERBOARD_ORDER = (UserExperience.total_xp.desc(), UserExperience.user_id.asc())


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    position: int
    user_id: int
    total_xp: int
    level: int


@dataclass(frozen=True, slots=True)
class RankInfo:
    position: int
    total_users: int
    total_xp: int
    level: int


@dataclass(frozen=True, slots=True)
class GuildStats:
    total_users: int
    total_xp: int
    average_level: float
    highest_level: int
    top_user_id: int | None


class LeaderboardRanker:
    """Deterministic per-guild rankings."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get_leaderboard(
        self, guild_id: int, limit: int = 10, offset: int = 0
    ) -> list[LeaderboardEntry]:
        """Top *limit* members of *guild_id*, starting after *offset*."""
        if limit < 1:
            raise ValidationError(f"limit must be >= 1, got {limit}")
        if offset < 0:
            raise ValidationError(f"offset must be >= 0, got {offset}")

        with Session(self._engine) as session:
            rows = session.execute(
                select(UserExperience.user_id, UserExperience.total_xp)
                .where(UserExperience.guild_id == guild_id)
                .order_by(*LEADERBOARD_ORDER)
                .offset(offset)
                .limit(limit)
            ).all()

        return [
            LeaderboardEntry(
                position=offset + i + 1,
                user_id=user_id,
                total_xp=total_xp,
                level=level_for_xp(total_xp),
            )
            for i, (user_id, total_xp) in enumerate(rows)
        ]

    def get_rank(self, guild_id: int, user_id: int) -> RankInfo | None:
        """Position of *user_id* among all members of *guild_id*.

        Returns None when the member has no record (unranked).
        """
        with Session(self._engine) as session:
            total_xp = session.scalar(
                select(UserExperience.total_xp).where(
                    UserExperience.guild_id == guild_id,
                    UserExperience.user_id == user_id,
                )
            )
            if total_xp is None:
                return None

            ahead = session.scalar(
                select(func.count())
                .select_from(UserExperience)
                .where(
                    UserExperience.guild_id == guild_id,
                    or_(
                        UserExperience.total_xp > total_xp,
                        and_(
                            UserExperience.total_xp == total_xp,
                            UserExperience.user_id < user_id,
                        ),
                    ),
                )
            ) or 0
            total_users = session.scalar(
                select(func.count())
                .select_from(UserExperience)
                .where(UserExperience.guild_id == guild_id)
            ) or 0

        return RankInfo(
            position=ahead + 1,
            total_users=max(total_users, ahead + 1),
            total_xp=total_xp,
            level=level_for_xp(total_xp),
        )

    def count_members(self, guild_id: int) -> int:
        with Session(self._engine) as session:
            return session.scalar(
                select(func.count())
                .select_from(UserExperience)
                .where(UserExperience.guild_id == guild_id)
            ) or 0

    def get_guild_stats(self, guild_id: int) -> GuildStats:
        """Aggregate XP statistics for *guild_id*."""
        with Session(self._engine) as session:
            rows = session.execute(
                select(UserExperience.user_id, UserExperience.total_xp)
                .where(UserExperience.guild_id == guild_id)
                .order_by(*LEADERBOARD_ORDER)
            ).all()

        if not rows:
            return GuildStats(
                total_users=0,
                total_xp=0,
                average_level=0.0,
                highest_level=0,
                top_user_id=None,
            )

        levels = [level_for_xp(xp) for _uid, xp in rows]
        return GuildStats(
            total_users=len(rows),
            total_xp=sum(xp for _uid, xp in rows),
            average_level=round(sum(levels) / len(levels), 2),
            highest_level=max(levels),
            top_user_id=rows[0][0],
        )
