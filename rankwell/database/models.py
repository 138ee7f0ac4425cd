"""
rankwell.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- user_experience           — One XP record per (guild, member)
- guild_experience_settings — Per-guild XP tuning, stored as JSON

Level is never stored: it is always derived from ``total_xp`` through
:func:`rankwell.engine.levels.level_for_xp`.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Rankwell ORM models."""


# ---------------------------------------------------------------------------
# UserExperience — cumulative XP and per-source counters
# ---------------------------------------------------------------------------
class UserExperience(Base):
    __tablename__ = "user_experience"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    total_xp: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    messages_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    commands_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    roles_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    voice_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Last successful award per source (cooldown clocks)
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_command_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_role_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_voice_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_user_experience_guild_xp", "guild_id", "total_xp"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserExperience guild={self.guild_id} user={self.user_id} "
            f"xp={self.total_xp}>"
        )


# ---------------------------------------------------------------------------
# GuildExperienceSettings — owned by the settings service, read-only to
# the award path (served from GuildSettingsCache)
# ---------------------------------------------------------------------------
class GuildExperienceSettings(Base):
    """Per-guild XP tuning.

    The whole :class:`~rankwell.engine.settings.GuildExperienceConfig` is
    stored as one JSON document so new knobs don't need a migration.
    Unknown keys are ignored on load; missing keys fall back to defaults.
    """
    __tablename__ = "guild_experience_settings"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<GuildExperienceSettings guild={self.guild_id}>"


# ---------------------------------------------------------------------------
# GuildLevelRewards — level → role table, owned by the level-rewards service
# (served from LevelRewardCache)
# ---------------------------------------------------------------------------
class GuildLevelRewards(Base):
    """Per-guild reward roles and reward mode as one JSON document."""
    __tablename__ = "guild_level_rewards"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<GuildLevelRewards guild={self.guild_id}>"
