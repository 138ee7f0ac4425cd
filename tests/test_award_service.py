"""
tests/test_award_service.py — AwardProcessor Tests
===================================================

Drives the full award path against in-memory SQLite: config gating,
cooldowns, delta calculation, level-up facts, and the failure/timeout
guarantees (nothing persisted, no cooldown spent, no level-up).
"""

from __future__ import annotations

import asyncio
import random
import threading
import time
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from conftest import GUILD, T0
from rankwell.engine.errors import AwardPersistenceError, ValidationError
from rankwell.engine.events import ActivitySource, AwardResult, LevelUp
from rankwell.engine.settings import GuildExperienceConfig
from rankwell.services.award_service import (
    AwardProcessor,
    command_weight,
    compute_delta,
    voice_minutes,
)
from rankwell.services.experience_store import ExperienceStore

USER = 42
MSG = ActivitySource.MESSAGE


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _at(seconds: float):
    return T0 + timedelta(seconds=seconds)


def _fixed_message_xp(settings, amount: int) -> None:
    settings.update(GUILD, message_xp_min=amount, message_xp_max=amount)


# ===========================================================================
# Pure delta helpers
# ===========================================================================
class TestComputeDelta:
    cfg = GuildExperienceConfig(enabled=True)

    def test_message_within_configured_range(self):
        rng = random.Random(7)
        for _ in range(200):
            delta, step = compute_delta(MSG, self.cfg, {}, rng)
            assert 15 <= delta <= 25
            assert step == 1

    def test_custom_message_range_is_used(self):
        cfg = GuildExperienceConfig(enabled=True, message_xp_min=40, message_xp_max=40)
        assert compute_delta(MSG, cfg, {}, random.Random()) == (40, 1)

    @pytest.mark.parametrize(
        "command, expected",
        [("8ball", 15), ("avatar", 10), ("userinfo", 12), ("level", 5), ("help", 3), ("unknown", 8)],
    )
    def test_command_table(self, command, expected):
        delta, _ = compute_delta(
            ActivitySource.COMMAND, self.cfg, {"command": command}, random.Random()
        )
        assert delta == expected

    def test_command_table_scales_with_base(self):
        cfg = GuildExperienceConfig(enabled=True, command_xp_base=16)
        delta, _ = compute_delta(
            ActivitySource.COMMAND, cfg, {"command": "8ball"}, random.Random()
        )
        assert delta == 30

    def test_explicit_weight_overrides_table(self):
        assert command_weight({"command": "8ball", "weight": 2}) == 2.0

    def test_zero_weight_earns_nothing(self):
        delta, step = compute_delta(
            ActivitySource.COMMAND, self.cfg, {"weight": 0}, random.Random()
        )
        assert (delta, step) == (0, 1)

    def test_tiny_weight_still_earns_one(self):
        delta, _ = compute_delta(
            ActivitySource.COMMAND, self.cfg, {"weight": 0.01}, random.Random()
        )
        assert delta == 1

    @pytest.mark.parametrize("weight", [-1, "heavy", True])
    def test_bad_weight_rejected(self, weight):
        with pytest.raises(ValidationError):
            command_weight({"weight": weight})

    def test_role_amount(self):
        assert compute_delta(ActivitySource.ROLE, self.cfg, {}, random.Random()) == (50, 1)

    def test_voice_minutes_default_from_cooldown(self):
        assert voice_minutes(self.cfg, {}) == 5
        assert compute_delta(ActivitySource.VOICE, self.cfg, {}, random.Random()) == (5, 5)

    def test_voice_minutes_from_context(self):
        assert voice_minutes(self.cfg, {"minutes": 3}) == 3

    @pytest.mark.parametrize("minutes", [0, -2, 1.5, "5"])
    def test_bad_voice_minutes_rejected(self, minutes):
        with pytest.raises(ValidationError):
            voice_minutes(self.cfg, {"minutes": minutes})


# ===========================================================================
# Gating
# ===========================================================================
class TestGating:
    def test_system_disabled_returns_none(self, processor, settings, store):
        settings.update(GUILD, enabled=False)
        assert run_async(processor.award(GUILD, USER, MSG)) is None
        assert store.get(GUILD, USER) is None

    def test_source_disabled_returns_none(self, processor, settings, store):
        settings.update(GUILD, voice_xp=False)
        assert run_async(processor.award(GUILD, USER, ActivitySource.VOICE)) is None
        assert store.get(GUILD, USER) is None

    def test_default_guild_config_is_disabled(self, store, emitter):
        from rankwell.engine.cache import GuildSettingsCache

        cache = GuildSettingsCache(store.engine)
        proc = AwardProcessor(store, cache, emitter)
        assert run_async(proc.award(GUILD, USER, MSG, now=T0)) is None

    def test_unknown_source_rejected(self, processor):
        with pytest.raises(ValidationError):
            run_async(processor.award(GUILD, USER, "reaction"))

    def test_source_given_as_string(self, processor):
        result = run_async(processor.award(GUILD, USER, "role"))
        assert result.source is ActivitySource.ROLE
        assert result.delta == 50


# ===========================================================================
# Awards & level-ups
# ===========================================================================
class TestAward:
    def test_first_award_levels_up(self, processor, settings, emitter, store):
        """0 XP + 100 message XP → total 100, level 0 → 1, one LevelUp."""
        _fixed_message_xp(settings, 100)
        notifier = AsyncMock()
        emitter.register(notifier)

        async def scenario():
            result = await processor.award(GUILD, USER, MSG)
            await emitter.drain()
            return result

        result = run_async(scenario())
        assert result == AwardResult(
            source=MSG,
            delta=100,
            total_xp=100,
            level_before=0,
            level_after=1,
            leveled_up=True,
        )
        notifier.assert_awaited_once_with(
            LevelUp(
                guild_id=GUILD,
                user_id=USER,
                level_before=0,
                level_after=1,
                total_xp=100,
                source=MSG,
            )
        )
        assert store.get(GUILD, USER).total_xp == 100

    def test_message_cooldown_scenario(self, processor, settings, store):
        """Awards at t=0 and t=61 land; t=10 is rejected."""
        _fixed_message_xp(settings, 20)

        async def scenario():
            return [
                await processor.award(GUILD, USER, MSG, now=_at(0)),
                await processor.award(GUILD, USER, MSG, now=_at(10)),
                await processor.award(GUILD, USER, MSG, now=_at(61)),
            ]

        first, second, third = run_async(scenario())
        assert first.total_xp == 20
        assert second is None
        assert third.total_xp == 40
        assert store.get(GUILD, USER).messages_sent == 2

    def test_cooldown_enforced_by_store_when_guard_is_cold(
        self, processor, settings, store
    ):
        """A fresh guard (e.g. after restart) still can't double-award."""
        _fixed_message_xp(settings, 20)
        run_async(processor.award(GUILD, USER, MSG, now=_at(0)))
        processor.guard.forget(GUILD)

        assert run_async(processor.award(GUILD, USER, MSG, now=_at(10))) is None
        assert store.get(GUILD, USER).total_xp == 20

    def test_sources_do_not_share_cooldowns(self, processor, settings):
        _fixed_message_xp(settings, 20)

        async def scenario():
            return [
                await processor.award(GUILD, USER, MSG, now=_at(0)),
                await processor.award(
                    GUILD, USER, ActivitySource.COMMAND, {"command": "help"}, now=_at(1)
                ),
            ]

        msg, cmd = run_async(scenario())
        assert msg is not None
        assert cmd.total_xp == 23

    def test_level_up_emitted_exactly_once_at_boundary(
        self, processor, settings, emitter
    ):
        _fixed_message_xp(settings, 5)
        notifier = AsyncMock()
        emitter.register(notifier)

        async def scenario():
            await processor.adjust_xp(GUILD, USER, 95)
            at_boundary = await processor.award(GUILD, USER, MSG, now=_at(0))
            past_boundary = await processor.award(GUILD, USER, MSG, now=_at(61))
            await emitter.drain()
            return at_boundary, past_boundary

        at_boundary, past_boundary = run_async(scenario())
        assert at_boundary.total_xp == 100 and at_boundary.leveled_up
        assert past_boundary.total_xp == 105 and not past_boundary.leveled_up
        assert notifier.await_count == 1

    def test_multi_level_jump_is_one_fact(self, processor, settings, emitter):
        settings.update(GUILD, role_xp_amount=600)
        notifier = AsyncMock()
        emitter.register(notifier)

        async def scenario():
            result = await processor.award(GUILD, USER, ActivitySource.ROLE)
            await emitter.drain()
            return result

        result = run_async(scenario())
        # 519 <= 600 < 800
        assert (result.level_before, result.level_after) == (0, 3)
        notifier.assert_awaited_once()
        fact = notifier.await_args.args[0]
        assert (fact.level_before, fact.level_after) == (0, 3)

    def test_voice_minutes_recorded(self, processor, store):
        result = run_async(
            processor.award(GUILD, USER, ActivitySource.VOICE, {"minutes": 7})
        )
        assert result.delta == 5
        assert store.get(GUILD, USER).voice_minutes == 7

    def test_cooldown_remaining(self, processor, settings):
        _fixed_message_xp(settings, 20)
        run_async(processor.award(GUILD, USER, MSG, now=_at(0)))
        assert processor.cooldown_remaining(GUILD, USER, MSG, now=_at(45)) == 15.0
        assert processor.cooldown_remaining(GUILD, USER, "command", now=_at(45)) == 0.0


# ===========================================================================
# Failure semantics
# ===========================================================================
class TestFailures:
    def test_store_error_raises_persistence_error(self, settings, emitter):
        store = MagicMock(spec=ExperienceStore)
        store.apply_award.side_effect = OperationalError(
            "UPDATE user_experience …", {}, Exception("database is locked")
        )
        notifier = AsyncMock()
        emitter.register(notifier)
        proc = AwardProcessor(store, settings, emitter, clock=lambda: T0)

        with pytest.raises(AwardPersistenceError) as excinfo:
            run_async(proc.award(GUILD, USER, MSG))

        err = excinfo.value
        assert (err.guild_id, err.user_id, err.source) == (GUILD, USER, "message")
        assert isinstance(err.__cause__, OperationalError)
        # Cooldown not spent, nothing announced
        assert proc.guard.is_eligible(GUILD, USER, MSG, T0, 60)
        notifier.assert_not_awaited()

    def test_timeout_leaves_no_state(self, db_engine, settings, emitter):
        finished = threading.Event()

        class SlowStore(ExperienceStore):
            def apply_award(self, *args, **kwargs):
                try:
                    time.sleep(0.3)
                    return super().apply_award(*args, **kwargs)
                finally:
                    finished.set()

        store = SlowStore(db_engine)
        _fixed_message_xp(settings, 100)
        notifier = AsyncMock()
        emitter.register(notifier)
        proc = AwardProcessor(
            store, settings, emitter, write_timeout=0.05, clock=lambda: T0
        )

        async def scenario():
            try:
                await proc.award(GUILD, USER, MSG)
            finally:
                # Let the abandoned worker reach its commit point.
                await asyncio.to_thread(finished.wait, 5)
                await emitter.drain()

        with pytest.raises(AwardPersistenceError, match="timed out"):
            run_async(scenario())

        assert finished.is_set()
        assert store.get(GUILD, USER) is None
        assert proc.guard.is_eligible(GUILD, USER, MSG, T0, 60)
        notifier.assert_not_awaited()

    def test_notifier_failure_does_not_undo_award(self, processor, emitter, store):
        emitter.register(AsyncMock(side_effect=RuntimeError("discord down")))

        async def scenario():
            await processor.adjust_xp(GUILD, USER, 99)
            result = await processor.award(GUILD, USER, ActivitySource.ROLE)
            await emitter.drain()
            return result

        result = run_async(scenario())
        assert result.leveled_up
        assert store.get(GUILD, USER).total_xp == 149


# ===========================================================================
# Administrative operations
# ===========================================================================
class TestAdmin:
    def test_adjust_emits_no_level_up(self, processor, emitter):
        notifier = AsyncMock()
        emitter.register(notifier)

        async def scenario():
            change = await processor.adjust_xp(GUILD, USER, 1000)
            await emitter.drain()
            return change

        change = run_async(scenario())
        assert change.level_after == 4
        notifier.assert_not_awaited()

    def test_reset_user_clears_cooldowns(self, processor, settings, store):
        _fixed_message_xp(settings, 20)
        run_async(processor.award(GUILD, USER, MSG, now=_at(0)))

        assert run_async(processor.reset_user(GUILD, USER)) is True
        assert store.get(GUILD, USER) is None
        result = run_async(processor.award(GUILD, USER, MSG, now=_at(5)))
        assert result.total_xp == 20

    def test_reset_guild(self, processor, store):
        async def scenario():
            for uid in (1, 2, 3):
                await processor.award(GUILD, uid, ActivitySource.ROLE)
            return await processor.reset_guild(GUILD)

        assert run_async(scenario()) == 3
        assert len(processor.guard) == 0
