"""
rankwell.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy import Engine

from rankwell.database.engine import create_db_engine
from rankwell.services.leaderboard_service import LeaderboardRanker


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


def get_ranker(engine: Annotated[Engine, Depends(get_engine)]) -> LeaderboardRanker:
    return LeaderboardRanker(engine)
