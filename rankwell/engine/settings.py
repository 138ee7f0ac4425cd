"""
rankwell.engine.settings — Per-guild XP configuration
======================================================

:class:`GuildExperienceConfig` is the read-only view of a guild's XP tuning
that the award path consults.  It is persisted by
:mod:`rankwell.services.settings_service` and served from
:class:`rankwell.engine.cache.GuildSettingsCache`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from rankwell.engine.errors import ValidationError
from rankwell.engine.events import ActivitySource


@dataclass(frozen=True, slots=True)
class GuildExperienceConfig:
    """XP tuning for one guild.  Cooldowns are in seconds."""

    enabled: bool = False

    # Per-source switches
    message_xp: bool = True
    command_xp: bool = True
    role_xp: bool = True
    voice_xp: bool = True

    # Amounts
    message_xp_min: int = 15
    message_xp_max: int = 25
    command_xp_base: int = 8
    role_xp_amount: int = 50
    voice_xp_amount: int = 5

    # Cooldowns
    message_cooldown: int = 60
    command_cooldown: int = 30
    role_cooldown: int = 0
    voice_cooldown: int = 300

    # Announcements
    level_up_messages: bool = True
    level_up_channel_id: int | None = None

    def __post_init__(self) -> None:
        if self.message_xp_min < 0 or self.message_xp_max < self.message_xp_min:
            raise ValidationError(
                f"message XP range must satisfy 0 <= min <= max, "
                f"got [{self.message_xp_min}, {self.message_xp_max}]"
            )
        for name in ("command_xp_base", "role_xp_amount", "voice_xp_amount"):
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} must be >= 0")
        for source in ActivitySource:
            if self.cooldown_for(source) < 0:
                raise ValidationError(f"{source.value}_cooldown must be >= 0")

    # -------------------------------------------------------------------
    # Per-source lookups
    # -------------------------------------------------------------------
    def source_enabled(self, source: ActivitySource) -> bool:
        """True when both the system and *source* are switched on."""
        return self.enabled and getattr(self, f"{source.value}_xp")

    def cooldown_for(self, source: ActivitySource) -> int:
        return getattr(self, f"{source.value}_cooldown")

    # -------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> GuildExperienceConfig:
        """Build a config from stored JSON; unknown keys are ignored."""
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in known})

    def with_changes(self, **changes: Any) -> GuildExperienceConfig:
        """Return a validated copy with *changes* applied."""
        known = {f.name for f in dataclasses.fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValidationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **changes)
