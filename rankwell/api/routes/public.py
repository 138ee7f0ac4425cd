"""
rankwell.api.routes.public — Read-only public endpoints
========================================================

Snowflake ids are serialized as strings; JavaScript numbers cannot hold
them exactly.
"""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel

from rankwell.api.deps import get_ranker
from rankwell.engine.levels import LevelProgress, progress, rank_title
from rankwell.services.leaderboard_service import LeaderboardRanker

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class LeaderboardRow(BaseModel):
    position: int
    user_id: str
    total_xp: int
    level: int
    title: str


class LeaderboardPage(BaseModel):
    """One page of a guild leaderboard."""
    guild_id: str
    page: int
    page_size: int
    total_users: int
    total_pages: int
    entries: list[LeaderboardRow]


class LevelInfo(BaseModel):
    """Position of an XP total on the leveling curve."""
    total_xp: int
    level: int
    title: str
    xp_into_level: int
    xp_for_next_level: int
    next_level_xp: int
    percent: float


class UserRank(LevelInfo):
    guild_id: str
    user_id: str
    position: int
    total_users: int


class GuildStatsResponse(BaseModel):
    guild_id: str
    total_users: int
    total_xp: int
    average_level: float
    highest_level: int
    top_user_id: str | None


def _level_fields(prog: LevelProgress) -> dict:
    return {
        "total_xp": prog.total_xp,
        "level": prog.level,
        "title": rank_title(prog.level),
        "xp_into_level": prog.xp_into_level,
        "xp_for_next_level": prog.xp_for_next_level,
        "next_level_xp": prog.next_level_xp,
        "percent": round(prog.percent, 2),
    }


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/leaderboard
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/leaderboard", response_model=LeaderboardPage)
def get_leaderboard(
    guild_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    ranker: LeaderboardRanker = Depends(get_ranker),
):
    total = ranker.count_members(guild_id)
    entries = ranker.get_leaderboard(guild_id, page_size, (page - 1) * page_size)
    return LeaderboardPage(
        guild_id=str(guild_id),
        page=page,
        page_size=page_size,
        total_users=total,
        total_pages=max(1, math.ceil(total / page_size)),
        entries=[
            LeaderboardRow(
                position=e.position,
                user_id=str(e.user_id),
                total_xp=e.total_xp,
                level=e.level,
                title=rank_title(e.level),
            )
            for e in entries
        ],
    )


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/users/{user_id}/rank
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/users/{user_id}/rank", response_model=UserRank)
def get_user_rank(
    guild_id: int,
    user_id: int,
    ranker: LeaderboardRanker = Depends(get_ranker),
):
    info = ranker.get_rank(guild_id, user_id)
    if info is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "User is unranked")
    return UserRank(
        guild_id=str(guild_id),
        user_id=str(user_id),
        position=info.position,
        total_users=info.total_users,
        **_level_fields(progress(info.total_xp)),
    )


# ---------------------------------------------------------------------------
# GET /levels/{total_xp}
# ---------------------------------------------------------------------------
@router.get("/levels/{total_xp}", response_model=LevelInfo)
def get_level_progress(total_xp: int = Path(ge=0)):
    return LevelInfo(**_level_fields(progress(total_xp)))


# ---------------------------------------------------------------------------
# GET /guilds/{guild_id}/stats
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/stats", response_model=GuildStatsResponse)
def get_guild_stats(
    guild_id: int,
    ranker: LeaderboardRanker = Depends(get_ranker),
):
    stats = ranker.get_guild_stats(guild_id)
    return GuildStatsResponse(
        guild_id=str(guild_id),
        total_users=stats.total_users,
        total_xp=stats.total_xp,
        average_level=stats.average_level,
        highest_level=stats.highest_level,
        top_user_id=str(stats.top_user_id) if stats.top_user_id is not None else None,
    )
