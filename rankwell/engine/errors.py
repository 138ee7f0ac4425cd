"""
rankwell.engine.errors — Exception hierarchy
=============================================

Disabled sources and active cooldowns are *not* errors (the award path
returns ``None``).  Exceptions are reserved for programmer mistakes and
persistence failures.
"""

from __future__ import annotations


class RankwellError(Exception):
    """Base class for all Rankwell errors."""


class ValidationError(RankwellError, ValueError):
    """An argument or configuration value is invalid (programmer error)."""


class AwardPersistenceError(RankwellError):
    """An award write failed or timed out.  Nothing was committed.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, guild_id: int, user_id: int, source: str, reason: str) -> None:
        super().__init__(
            f"Failed to persist {source} award for user {user_id} "
            f"in guild {guild_id}: {reason}"
        )
        self.guild_id = guild_id
        self.user_id = user_id
        self.source = source
