"""
rankwell.engine.events — Activity sources and award facts
==========================================================

Every inbound activity is normalized into an :class:`ActivitySource` before
the award path sees it.  The award path answers with an :class:`AwardResult`
and, when a level boundary is crossed, produces a :class:`LevelUp` fact for
the notifier.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from rankwell.engine.errors import ValidationError

__all__ = ["ActivitySource", "AwardResult", "LevelUp", "SOURCE_COLUMNS"]


class ActivitySource(enum.StrEnum):
    """Activity categories that generate XP."""
    MESSAGE = "message"
    COMMAND = "command"
    ROLE = "role"
    VOICE = "voice"

    @classmethod
    def coerce(cls, value: ActivitySource | str) -> ActivitySource:
        """Return *value* as an ActivitySource or raise ValidationError."""
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ValidationError(
                f"Unknown activity source {value!r} (expected one of: {valid})"
            ) from None


# source → (counter column, last-award column) on UserExperience
SOURCE_COLUMNS: dict[ActivitySource, tuple[str, str]] = {
    ActivitySource.MESSAGE: ("messages_sent", "last_message_at"),
    ActivitySource.COMMAND: ("commands_used", "last_command_at"),
    ActivitySource.ROLE: ("roles_earned", "last_role_at"),
    ActivitySource.VOICE: ("voice_minutes", "last_voice_at"),
}


@dataclass(frozen=True, slots=True)
class AwardResult:
    """Outcome of a successful award."""

    source: ActivitySource
    delta: int
    total_xp: int
    level_before: int
    level_after: int
    leveled_up: bool


@dataclass(frozen=True, slots=True)
class LevelUp:
    """A member crossed one or more level boundaries."""

    guild_id: int
    user_id: int
    level_before: int
    level_after: int
    total_xp: int
    source: ActivitySource | None = None
