"""
tests/test_api_routes.py — FastAPI Route Integration Tests
===========================================================

Public read-only endpoints against in-memory SQLite, wired in through
``app.dependency_overrides``.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import GUILD
from rankwell.api.deps import get_engine
from rankwell.api.main import app
from rankwell.database.models import UserExperience


@pytest.fixture
def client(db_engine):
    """TestClient whose routes read from the test database."""
    app.dependency_overrides[get_engine] = lambda: db_engine
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(db_session):
    db_session.add_all(
        UserExperience(guild_id=GUILD, user_id=uid, total_xp=xp)
        for uid, xp in {1: 500, 2: 1500, 3: 300}.items()
    )
    db_session.commit()


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Leaderboard
# ===========================================================================
class TestLeaderboardEndpoint:
    def test_leaderboard(self, client, seeded):
        resp = client.get(f"/api/guilds/{GUILD}/leaderboard")
        assert resp.status_code == 200
        body = resp.json()
        assert body["guild_id"] == str(GUILD)
        assert body["total_users"] == 3
        assert body["total_pages"] == 1
        assert [e["user_id"] for e in body["entries"]] == ["2", "1", "3"]
        assert [e["total_xp"] for e in body["entries"]] == [1500, 500, 300]
        assert body["entries"][0]["title"] == "Active"

    def test_paging(self, client, seeded):
        resp = client.get(f"/api/guilds/{GUILD}/leaderboard?page=2&page_size=2")
        body = resp.json()
        assert body["total_pages"] == 2
        assert [e["position"] for e in body["entries"]] == [3]

    def test_empty_guild(self, client):
        body = client.get("/api/guilds/1/leaderboard").json()
        assert body["entries"] == []
        assert body["total_pages"] == 1

    @pytest.mark.parametrize("query", ["page=0", "page_size=0", "page_size=500"])
    def test_invalid_query_rejected(self, client, query):
        resp = client.get(f"/api/guilds/{GUILD}/leaderboard?{query}")
        assert resp.status_code == 422


# ===========================================================================
# Rank
# ===========================================================================
class TestRankEndpoint:
    def test_rank(self, client, seeded):
        resp = client.get(f"/api/guilds/{GUILD}/users/1/rank")
        assert resp.status_code == 200
        body = resp.json()
        assert body["position"] == 2
        assert body["total_users"] == 3
        assert body["level"] == 2
        assert body["xp_into_level"] == 500 - 282

    def test_unranked_is_404(self, client, seeded):
        resp = client.get(f"/api/guilds/{GUILD}/users/999/rank")
        assert resp.status_code == 404


# ===========================================================================
# Level curve
# ===========================================================================
class TestLevelEndpoint:
    @pytest.mark.parametrize("xp, level", [(0, 0), (99, 0), (100, 1), (282, 2)])
    def test_levels(self, client, xp, level):
        body = client.get(f"/api/levels/{xp}").json()
        assert body["level"] == level

    def test_progress_fields(self, client):
        body = client.get("/api/levels/150").json()
        assert body["xp_into_level"] == 50
        assert body["xp_for_next_level"] == 182
        assert body["next_level_xp"] == 282

    def test_negative_rejected(self, client):
        assert client.get("/api/levels/-1").status_code == 422


# ===========================================================================
# Stats
# ===========================================================================
class TestStatsEndpoint:
    def test_stats(self, client, seeded):
        body = client.get(f"/api/guilds/{GUILD}/stats").json()
        assert body["total_users"] == 3
        assert body["total_xp"] == 2300
        assert body["top_user_id"] == "2"

    def test_empty_stats(self, client):
        body = client.get("/api/guilds/1/stats").json()
        assert body["total_users"] == 0
        assert body["top_user_id"] is None
