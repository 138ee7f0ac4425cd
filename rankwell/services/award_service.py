"""
rankwell.services.award_service — Award Processing
===================================================

:class:`AwardProcessor` turns one activity into XP:

  source → guild config gate → cooldown pre-check → delta
         → atomic store write (bounded) → level before/after → LevelUp fact

The processor is built once at startup and shared by every cog.  It holds a
store handle, the settings cache, the cooldown guard and the level-up
emitter; there is no module-level state.

Disabled sources and active cooldowns return ``None``.  A failed or timed-out
write raises :class:`~rankwell.engine.errors.AwardPersistenceError` and
leaves nothing behind: no XP, no counter, no spent cooldown, no level-up.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from rankwell.constants import (
    COMMAND_XP_TABLE,
    DEFAULT_COMMAND_XP_BASE,
    MIN_VOICE_TICK_MINUTES,
)
from rankwell.database.engine import run_db, run_db_bounded
from rankwell.engine.cache import GuildSettingsCache
from rankwell.engine.cooldown import CooldownGuard
from rankwell.engine.errors import AwardPersistenceError, ValidationError
from rankwell.engine.events import ActivitySource, AwardResult, LevelUp
from rankwell.engine.levels import level_for_xp
from rankwell.engine.settings import GuildExperienceConfig
from rankwell.services.experience_store import ExperienceStore, XPAdjustment
from rankwell.services.level_up_emitter import LevelUpEmitter

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Delta calculation (pure)
# ---------------------------------------------------------------------------
def command_weight(context: Mapping[str, Any]) -> float:
    """Weight applied to the command base amount.

    An explicit ``context["weight"]`` wins; otherwise the built-in table is
    consulted by ``context["command"]``; anything else weighs 1.0.
    """
    weight = context.get("weight")
    if weight is None:
        name = context.get("command")
        if name in COMMAND_XP_TABLE:
            return COMMAND_XP_TABLE[name] / DEFAULT_COMMAND_XP_BASE
        return 1.0
    if isinstance(weight, bool) or not isinstance(weight, int | float) or weight < 0:
        raise ValidationError(f"command weight must be a number >= 0, got {weight!r}")
    return float(weight)


def voice_minutes(cfg: GuildExperienceConfig, context: Mapping[str, Any]) -> int:
    """Minutes of presence credited by one voice tick."""
    minutes = context.get("minutes")
    if minutes is None:
        return max(MIN_VOICE_TICK_MINUTES, cfg.voice_cooldown // 60)
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 1:
        raise ValidationError(f"voice minutes must be an int >= 1, got {minutes!r}")
    return minutes


def compute_delta(
    source: ActivitySource,
    cfg: GuildExperienceConfig,
    context: Mapping[str, Any],
    rng: random.Random,
) -> tuple[int, int]:
    """Return ``(xp_delta, counter_step)`` for one award."""
    if source is ActivitySource.MESSAGE:
        return rng.randint(cfg.message_xp_min, cfg.message_xp_max), 1
    if source is ActivitySource.COMMAND:
        weight = command_weight(context)
        if cfg.command_xp_base == 0 or weight == 0:
            return 0, 1
        return max(1, round(cfg.command_xp_base * weight)), 1
    if source is ActivitySource.ROLE:
        return cfg.role_xp_amount, 1
    return cfg.voice_xp_amount, voice_minutes(cfg, context)


# ---------------------------------------------------------------------------
# AwardProcessor
# ---------------------------------------------------------------------------
class AwardProcessor:
    """Orchestrates XP awards for all guilds.

    Parameters
    ----------
    store : ExperienceStore for record writes
    settings : GuildSettingsCache for per-guild tuning (in-memory reads)
    emitter : LevelUpEmitter receiving level-up facts
    guard : optional CooldownGuard (a fresh one by default)
    write_timeout : seconds a single award write may take
    rng : random source for message XP (injectable for tests)
    clock : returns "now" as an aware datetime (injectable for tests)
    """

    def __init__(
        self,
        store: ExperienceStore,
        settings: GuildSettingsCache,
        emitter: LevelUpEmitter,
        *,
        guard: CooldownGuard | None = None,
        write_timeout: float = 5.0,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.settings = settings
        self.emitter = emitter
        self.guard = guard or CooldownGuard()
        self.write_timeout = write_timeout
        self._rng = rng or random.Random()
        self._clock = clock

    async def award(
        self,
        guild_id: int,
        user_id: int,
        source: ActivitySource | str,
        context: Mapping[str, Any] | None = None,
        *,
        now: datetime | None = None,
    ) -> AwardResult | None:
        """Award XP for one activity.

        Returns None when the system/source is disabled or on cooldown.

        Raises
        ------
        ValidationError
            Unknown *source* or malformed *context*.
        AwardPersistenceError
            The write failed or exceeded ``write_timeout``; nothing committed.
        """
        source = ActivitySource.coerce(source)
        context = context or {}
        now = now or self._clock()

        cfg = self.settings.get(guild_id)
        if not cfg.source_enabled(source):
            return None

        cooldown = cfg.cooldown_for(source)
        if not self.guard.is_eligible(guild_id, user_id, source, now, cooldown):
            return None

        delta, counter_step = compute_delta(source, cfg, context, self._rng)

        try:
            total_xp = await run_db_bounded(
                self.store.apply_award,
                guild_id,
                user_id,
                source,
                delta,
                now=now,
                cooldown=cooldown,
                counter_step=counter_step,
                timeout=self.write_timeout,
            )
        except TimeoutError as exc:
            raise AwardPersistenceError(
                guild_id, user_id, source.value, "write timed out"
            ) from exc
        except SQLAlchemyError as exc:
            raise AwardPersistenceError(
                guild_id, user_id, source.value, type(exc).__name__
            ) from exc

        if total_xp is None:
            # Another award for the same source committed first.
            return None

        self.guard.record(guild_id, user_id, source, now)

        level_before = level_for_xp(total_xp - delta)
        level_after = level_for_xp(total_xp)
        leveled_up = level_after > level_before

        logger.debug(
            "Awarded %d %s XP to user %d in guild %d (total %d)",
            delta, source.value, user_id, guild_id, total_xp,
        )
        if leveled_up:
            logger.info(
                "User %d leveled up %d → %d in guild %d",
                user_id, level_before, level_after, guild_id,
            )
            self.emitter.emit(
                LevelUp(
                    guild_id=guild_id,
                    user_id=user_id,
                    level_before=level_before,
                    level_after=level_after,
                    total_xp=total_xp,
                    source=source,
                )
            )

        return AwardResult(
            source=source,
            delta=delta,
            total_xp=total_xp,
            level_before=level_before,
            level_after=level_after,
            leveled_up=leveled_up,
        )

    def cooldown_remaining(
        self,
        guild_id: int,
        user_id: int,
        source: ActivitySource | str,
        *,
        now: datetime | None = None,
    ) -> float:
        """Seconds until *source* can award again for this member."""
        source = ActivitySource.coerce(source)
        cooldown = self.settings.get(guild_id).cooldown_for(source)
        return self.guard.remaining(
            guild_id, user_id, source, now or self._clock(), cooldown
        )

    # -------------------------------------------------------------------
    # Administrative operations
    # -------------------------------------------------------------------
    async def adjust_xp(self, guild_id: int, user_id: int, amount: int) -> XPAdjustment:
        """Admin add/remove of XP, clamped at zero.  No level-up is emitted."""
        return await run_db(
            self.store.adjust_xp, guild_id, user_id, amount, now=self._clock()
        )

    async def reset_user(self, guild_id: int, user_id: int) -> bool:
        removed = await run_db(self.store.reset_user, guild_id, user_id)
        self.guard.forget(guild_id, user_id)
        return removed

    async def reset_guild(self, guild_id: int) -> int:
        removed = await run_db(self.store.reset_guild, guild_id)
        self.guard.forget(guild_id)
        return removed
