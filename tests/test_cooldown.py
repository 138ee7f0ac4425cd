"""
tests/test_cooldown.py — CooldownGuard Tests
=============================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy import select

from rankwell.database.models import UserExperience
from rankwell.engine.cooldown import CooldownGuard, as_utc
from rankwell.engine.events import ActivitySource

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)
MSG = ActivitySource.MESSAGE
CMD = ActivitySource.COMMAND


def _at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


class TestEligibility:
    def test_unknown_member_is_eligible(self):
        guard = CooldownGuard()
        assert guard.is_eligible(1, 2, MSG, T0, 60)

    def test_message_cooldown_scenario(self):
        """Award at t=0; t=10 rejected; t=61 accepted."""
        guard = CooldownGuard()
        guard.record(1, 2, MSG, _at(0))
        assert not guard.is_eligible(1, 2, MSG, _at(10), 60)
        assert guard.is_eligible(1, 2, MSG, _at(61), 60)

    def test_exact_boundary_is_eligible(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, _at(0))
        assert guard.is_eligible(1, 2, MSG, _at(60), 60)

    def test_sources_are_independent(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, _at(0))
        assert guard.is_eligible(1, 2, CMD, _at(1), 30)

    def test_members_and_guilds_are_independent(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, _at(0))
        assert guard.is_eligible(1, 3, MSG, _at(1), 60)
        assert guard.is_eligible(9, 2, MSG, _at(1), 60)

    def test_zero_cooldown_always_eligible(self):
        guard = CooldownGuard()
        guard.record(1, 2, ActivitySource.ROLE, _at(0))
        assert guard.is_eligible(1, 2, ActivitySource.ROLE, _at(0), 0)


class TestRecord:
    def test_record_never_moves_backwards(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, _at(100))
        guard.record(1, 2, MSG, _at(50))
        assert guard.remaining(1, 2, MSG, _at(120), 60) == 40.0

    def test_naive_timestamps_treated_as_utc(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, _at(0).replace(tzinfo=None))
        assert not guard.is_eligible(1, 2, MSG, _at(30), 60)


class TestRemaining:
    def test_remaining_counts_down(self):
        guard = CooldownGuard()
        assert guard.remaining(1, 2, MSG, T0, 60) == 0.0
        guard.record(1, 2, MSG, _at(0))
        assert guard.remaining(1, 2, MSG, _at(15), 60) == 45.0
        assert guard.remaining(1, 2, MSG, _at(90), 60) == 0.0


class TestHousekeeping:
    def test_forget_member(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, T0)
        guard.record(1, 3, MSG, T0)
        guard.forget(1, 2)
        assert guard.is_eligible(1, 2, MSG, T0, 60)
        assert not guard.is_eligible(1, 3, MSG, T0, 60)

    def test_forget_guild(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, T0)
        guard.record(1, 3, CMD, T0)
        guard.record(2, 2, MSG, T0)
        guard.forget(1)
        assert len(guard) == 1

    def test_prune_drops_old_entries(self):
        guard = CooldownGuard()
        guard.record(1, 2, MSG, _at(0))
        guard.record(1, 3, MSG, _at(500))
        assert guard.prune(_at(600), max_age=300) == 1
        assert len(guard) == 1


class TestEligibilityClause:
    def test_clause_matches_null_and_elapsed(self, db_session):
        db_session.add_all([
            UserExperience(guild_id=1, user_id=1, last_message_at=None),
            UserExperience(guild_id=1, user_id=2, last_message_at=_at(0)),
            UserExperience(guild_id=1, user_id=3, last_message_at=_at(50)),
        ])
        db_session.flush()

        clause = CooldownGuard.eligibility_clause(
            UserExperience.last_message_at, _at(60), 60
        )
        ids = db_session.scalars(
            select(UserExperience.user_id).where(clause).order_by(UserExperience.user_id)
        ).all()
        assert ids == [1, 2]


def test_as_utc_converts_offsets():
    from datetime import timezone

    plus_two = datetime(2026, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(plus_two) == T0
    assert as_utc(plus_two).tzinfo is UTC
