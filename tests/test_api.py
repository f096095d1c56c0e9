"""
API Backend Tests

Tests for FastAPI endpoints, schemas, and core functionality.
"""

import pytest


# Test imports work
def test_api_imports():
    """Test that all API modules can be imported without errors."""
    from api.main import app
    from api.core.config import Settings
    from api.models.schemas import ActivityOut, MantraCountUpdate, ObsidianSummary

    assert app is not None
    assert Settings is not None


def test_settings_defaults():
    """Test that settings have sensible defaults."""
    from api.core.config import Settings

    settings = Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:")
    assert settings.app_name == "Bhakti Tracker API"
    assert settings.api_prefix == "/api"
    assert settings.environment in ["development", "staging", "production"]


def test_cors_origins_from_env(monkeypatch):
    """Test comma-separated origins from the environment are split."""
    from api.core.config import Settings

    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")
    settings = Settings(_env_file=None)
    assert settings.allowed_origins == ["http://a.test", "http://b.test"]


def test_activity_serializes_display_name():
    """Test the wire name for activity labels."""
    from api.models.schemas import ActivityOut

    out = ActivityOut(name="morning_aarti", display_name="Morning Aarti", category="aarti", completed=False)
    assert out.model_dump(by_alias=True)["displayName"] == "Morning Aarti"


@pytest.fixture(scope="module")
def client():
    """Test client with the lifespan (table creation) running."""
    from fastapi.testclient import TestClient
    from api.main import app

    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    """Tests for health and root endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["database"] == "connected"
        assert data["timestamp"]

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["endpoints"]["mantras"] == "/api/mantras"

    def test_cors_headers(self, client):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert "access-control-allow-origin" in response.headers


class TestMantras:
    """Tests for counter endpoints."""

    def test_get_materializes_defaults(self, client):
        response = client.get("/api/mantras/2024-01-01")
        assert response.status_code == 200
        data = response.json()
        assert data["date"] == "2024-01-01"
        assert data["mantras"] == [
            {"name": "first", "count": 0, "target": 108},
            {"name": "third", "count": 0, "target": 1000},
            {"name": "dandavat", "count": 0, "target": None},
        ]

    def test_get_is_idempotent(self, client):
        first = client.get("/api/mantras/2024-01-02").json()
        second = client.get("/api/mantras/2024-01-02").json()
        assert first == second
        assert len(second["mantras"]) == 3

    def test_get_by_query(self, client):
        response = client.get("/api/mantras", params={"date": "2024-01-03"})
        assert response.status_code == 200
        assert response.json()["date"] == "2024-01-03"

    def test_put_sets_absolute_count(self, client):
        response = client.put("/api/mantras", json={"name": "first", "date": "2024-01-04", "count": 5})
        assert response.status_code == 200
        assert response.json() == {"name": "first", "count": 5, "target": 108}

        # Same value twice is harmless
        client.put("/api/mantras", json={"name": "first", "date": "2024-01-04", "count": 5})
        mantras = client.get("/api/mantras/2024-01-04").json()["mantras"]
        assert mantras[0]["count"] == 5

    def test_increment(self, client):
        for _ in range(2):
            response = client.post("/api/mantras/increment", json={"name": "third", "date": "2024-01-05"})
            assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_unknown_name_is_404(self, client):
        response = client.put("/api/mantras", json={"name": "nope", "date": "2024-01-06", "count": 1})
        assert response.status_code == 404
        data = response.json()
        assert data["status_code"] == 404
        assert "nope" in data["error"]

    def test_negative_count_is_422(self, client):
        response = client.put("/api/mantras", json={"name": "first", "date": "2024-01-06", "count": -1})
        assert response.status_code == 422
        assert response.json()["error"] == "Validation Error"

    def test_bad_date_format_is_422(self, client):
        assert client.get("/api/mantras/01-01-2024").status_code == 422

    def test_impossible_date_is_422(self, client):
        assert client.get("/api/mantras/2024-02-30").status_code == 422


class TestActivities:
    """Tests for checklist endpoints."""

    def test_get_uses_display_name(self, client):
        response = client.get("/api/activities/2024-02-01")
        assert response.status_code == 200
        activities = response.json()["activities"]
        assert len(activities) == 6
        assert activities[0] == {
            "name": "morning_aarti",
            "displayName": "Morning Aarti",
            "category": "aarti",
            "completed": False,
        }

    def test_put_completion(self, client):
        response = client.put(
            "/api/activities",
            json={"name": "mangalacharan", "date": "2024-02-02", "completed": True},
        )
        assert response.status_code == 200
        assert response.json()["completed"] is True

        response = client.put(
            "/api/activities",
            json={"name": "mangalacharan", "date": "2024-02-02", "completed": False},
        )
        assert response.json()["completed"] is False

    def test_completed_at_stamped_and_cleared(self, client):
        import asyncio
        from sqlalchemy import select
        from api.models.database import Activity, AsyncSessionLocal

        async def completed_at():
            async with AsyncSessionLocal() as db:
                result = await db.execute(
                    select(Activity).where(Activity.name == "evening_aarti", Activity.date == "2024-02-03")
                )
                return result.scalar_one().completed_at

        client.put("/api/activities", json={"name": "evening_aarti", "date": "2024-02-03", "completed": True})
        assert asyncio.run(completed_at()) is not None

        client.put("/api/activities", json={"name": "evening_aarti", "date": "2024-02-03", "completed": False})
        assert asyncio.run(completed_at()) is None

    def test_unknown_activity_is_404(self, client):
        response = client.put(
            "/api/activities",
            json={"name": "midnight_aarti", "date": "2024-02-04", "completed": True},
        )
        assert response.status_code == 404


class TestSummaries:
    """Tests for summary, weekly and note-taking exports."""

    def test_daily_summary(self, client):
        response = client.get("/api/summary/2024-03-01")
        assert response.status_code == 200
        data = response.json()
        assert len(data["mantras"]) == 3
        assert len(data["activities"]) == 6
        assert "displayName" in data["activities"][0]

    def test_weekly(self, client):
        client.put("/api/mantras", json={"name": "first", "date": "2024-03-05", "count": 9})
        client.get("/api/mantras/2024-03-07")

        response = client.get("/api/weekly", params={"end": "2024-03-07"})
        assert response.status_code == 200
        data = response.json()
        assert data["start"] == "2024-03-01"
        assert data["end"] == "2024-03-07"
        assert {"date": "2024-03-05", "name": "first", "count": 9, "target": 108} in data["data"]
        assert all("2024-03-01" <= row["date"] <= "2024-03-07" for row in data["data"])

    def test_obsidian(self, client):
        client.put("/api/mantras", json={"name": "first", "date": "2024-03-10", "count": 54})
        client.put("/api/mantras", json={"name": "dandavat", "date": "2024-03-10", "count": 7})
        client.put("/api/activities", json={"name": "morning_aarti", "date": "2024-03-10", "completed": True})

        data = client.get("/api/obsidian/2024-03-10").json()
        mantras = {m["name"]: m for m in data["mantras"]}
        assert mantras["first"]["percentage"] == 50
        assert mantras["first"]["complete"] is False
        assert mantras["dandavat"]["percentage"] is None
        assert mantras["dandavat"]["complete"] is None
        assert data["totalCount"] == 61
        assert data["allComplete"] is False
        assert data["activitiesCompleted"] == 1
        assert data["activitiesTotal"] == 6

    def test_obsidian_all_complete(self, client):
        client.put("/api/mantras", json={"name": "first", "date": "2024-03-11", "count": 200})
        client.put("/api/mantras", json={"name": "third", "date": "2024-03-11", "count": 1000})

        data = client.get("/api/obsidian/2024-03-11").json()
        mantras = {m["name"]: m for m in data["mantras"]}
        assert mantras["first"]["percentage"] == 100
        assert data["allComplete"] is True
