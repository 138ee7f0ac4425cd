"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import random
from datetime import UTC, datetime

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from rankwell.database.models import Base
from rankwell.engine.cache import GuildSettingsCache
from rankwell.engine.settings import GuildExperienceConfig
from rankwell.services.award_service import AwardProcessor
from rankwell.services.experience_store import ExperienceStore
from rankwell.services.leaderboard_service import LeaderboardRanker
from rankwell.services.level_up_emitter import LevelUpEmitter

GUILD = 111_111_111_111_111_111
T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Rankwell tables.

    Uses StaticPool so worker threads (``asyncio.to_thread``) share the same
    in-memory database.  Suitable for sequential access only.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine with one connection per thread.

    Needed wherever writers genuinely overlap: SQLite serializes them on its
    database lock, so each thread must own its connection.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'rankwell.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def store(db_engine: Engine) -> ExperienceStore:
    return ExperienceStore(db_engine)


@pytest.fixture
def ranker(db_engine: Engine) -> LeaderboardRanker:
    return LeaderboardRanker(db_engine)


@pytest.fixture
def settings(db_engine: Engine) -> GuildSettingsCache:
    """Settings cache whose default config has the XP system switched on."""
    return GuildSettingsCache(db_engine, default=GuildExperienceConfig(enabled=True))


@pytest.fixture
def emitter() -> LevelUpEmitter:
    return LevelUpEmitter()


@pytest.fixture
def processor(store, settings, emitter) -> AwardProcessor:
    return AwardProcessor(
        store,
        settings,
        emitter,
        write_timeout=5.0,
        rng=random.Random(1234),
        clock=lambda: T0,
    )
