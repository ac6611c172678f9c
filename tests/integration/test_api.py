"""
Integration tests for the HTTP surface over httpx.ASGITransport.
"""

import random

import httpx
import pytest

from app.api.deps import EngineRegistry
from app.core.config import EngineConfig, settings
from app.core.database import DatabaseManager
from app.main import app
from app.services.save_service import InMemorySaveStore
from tests.factories import ATHENS, FakeLandmarkLookup, make_landmark_ring

SESSION = "/api/v1/sessions/player-one"


@pytest.fixture
async def client():
    app.state.engines = EngineRegistry(
        landmarks=FakeLandmarkLookup(make_landmark_ring()),
        save_store=InMemorySaveStore(),
        config=EngineConfig(reward_confirm_delay_seconds=0, local_respawn_delay_seconds=0),
        rng=random.Random(11),
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await app.state.engines.close()


async def post_location(client, lat, lng, t=0):
    return await client.post(f"{SESSION}/location", json={"lat": lat, "lng": lng, "timestampMillis": t})


@pytest.mark.asyncio
class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["checks"]["database"] == "not_configured"

    async def test_unreachable_database(self, client, monkeypatch):
        async def ping():
            return False

        monkeypatch.setattr(settings, "MONGODB_URI", "mongodb://db.invalid:27017")
        monkeypatch.setattr(DatabaseManager, "ping", ping)

        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json() == {
            "success": False,
            "error": "Database is unreachable",
            "error_code": "SERVICE_UNAVAILABLE",
            "details": {},
        }


@pytest.mark.asyncio
class TestLocationEndpoints:

    async def test_report_location(self, client):
        response = await post_location(client, ATHENS.lat, ATHENS.lng, 5)

        assert response.status_code == 200
        body = response.json()
        assert body["historySize"] == 1
        assert body["currentLocation"]["timestampMillis"] == 5
        assert body["completedQuestIds"] == []

    async def test_invalid_location_is_rejected(self, client):
        response = await post_location(client, 123.0, 0.0)

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "VALIDATION_ERROR"

        current = await client.get(f"{SESSION}/location")
        assert current.status_code == 422

    async def test_toggle_gps_mode(self, client):
        response = await client.post(f"{SESSION}/gps-mode/toggle")
        assert response.json()["useMockGps"] is False


@pytest.mark.asyncio
class TestQuestEndpoints:

    async def test_scan_requires_location(self, client):
        response = await client.post(f"{SESSION}/quests/scan")
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    async def test_scan_with_explicit_origin(self, client):
        response = await client.post(f"{SESSION}/quests/scan", json={"lat": ATHENS.lat, "lng": ATHENS.lng})

        assert response.status_code == 200
        quests = response.json()["quests"]
        assert len(quests) == 5
        assert all(q["type"] == "MYSTERY" for q in quests)

    async def test_movement_quest_flow(self, client):
        """Add, walk, complete automatically, claim once."""
        created = await client.post(
            f"{SESSION}/quests",
            json={"id": "walk-200", "type": "MOVEMENT", "title": "Walk", "targetDistanceMeters": 200,
                  "rewards": [{"type": "EXP", "value": 40}]},
        )
        assert created.status_code == 201

        duplicate = await client.post(
            f"{SESSION}/quests",
            json={"id": "walk-200", "type": "MOVEMENT", "title": "Walk", "targetDistanceMeters": 200},
        )
        assert duplicate.status_code == 409

        await post_location(client, 0, 0, 0)
        await post_location(client, 0, 0.001, 1000)
        third = await post_location(client, 0, 0.002, 2000)
        assert third.json()["completedQuestIds"] == ["walk-200"]

        listing = (await client.get(f"{SESSION}/quests")).json()
        assert listing["active"] == []
        assert listing["completed"][0]["quest"]["id"] == "walk-200"
        assert listing["completed"][0]["state"] == "completed"
        assert listing["lastCompletedId"] == "walk-200"

        claim = await client.post(f"{SESSION}/quests/walk-200/claim")
        assert claim.status_code == 200
        assert claim.json()["rewards"] == [{"type": "EXP", "value": 40, "itemId": None}]

        again = await client.post(f"{SESSION}/quests/walk-200/claim")
        assert again.status_code == 409

    async def test_expire_quest_with_utc_offset(self, client):
        created = await client.post(
            f"{SESSION}/quests",
            json={"id": "stale", "type": "CHECKIN", "title": "Too late",
                  "targetCoordinates": {"lat": ATHENS.lat, "lng": ATHENS.lng},
                  "expirationDate": "2020-01-01T00:00:00Z"},
        )
        assert created.status_code == 201

        response = await client.post(f"{SESSION}/quests/expire")

        assert response.status_code == 200
        assert response.json()["expiredQuestIds"] == ["stale"]

    async def test_complete_unknown_quest(self, client):
        response = await client.post(f"{SESSION}/quests/nope/complete")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    async def test_local_generation(self, client):
        await post_location(client, ATHENS.lat, ATHENS.lng)

        response = await client.post(f"{SESSION}/quests/local/generate")

        assert response.status_code == 200
        assert len(response.json()["quests"]) == 2

    async def test_milestone_refresh_rate_limit(self, client):
        await post_location(client, ATHENS.lat, ATHENS.lng)

        for _ in range(10):
            response = await client.post(f"{SESSION}/quests/milestone/refresh")
            assert response.status_code == 200

        limited = await client.post(f"{SESSION}/quests/milestone/refresh")
        assert limited.status_code == 429
        assert limited.json()["error_code"] == "RATE_LIMIT_EXCEEDED"
        assert "Retry-After" in limited.headers

    async def test_clear_quests(self, client):
        await client.post(f"{SESSION}/quests/scan", json={"lat": ATHENS.lat, "lng": ATHENS.lng})

        response = await client.delete(f"{SESSION}/quests")

        assert response.status_code == 200
        assert (await client.get(f"{SESSION}/quests")).json()["active"] == []

    async def test_fog_of_war_query_flag(self, client):
        await post_location(client, ATHENS.lat, ATHENS.lng)
        await client.post(f"{SESSION}/quests/scan")

        response = await client.get(f"{SESSION}/quests", params={"visible_only": True})

        assert len(response.json()["active"]) == 5

    async def test_sessions_are_isolated(self, client):
        await client.post(f"{SESSION}/quests/scan", json={"lat": ATHENS.lat, "lng": ATHENS.lng})
        other = await client.get("/api/v1/sessions/player-two/quests")
        assert other.json()["active"] == []


@pytest.mark.asyncio
class TestSaveEndpoints:

    async def test_export_import_reset(self, client):
        await client.post(f"{SESSION}/quests/scan", json={"lat": ATHENS.lat, "lng": ATHENS.lng})
        blob = (await client.get(f"{SESSION}/save")).json()["blob"]

        reset = await client.post(f"{SESSION}/reset")
        assert reset.status_code == 200
        assert (await client.get(f"{SESSION}/quests")).json()["active"] == []

        restored = await client.put(f"{SESSION}/save", json={"blob": blob})
        assert restored.status_code == 200
        assert len((await client.get(f"{SESSION}/quests")).json()["active"]) == 5

    async def test_invalid_import(self, client):
        response = await client.put(f"{SESSION}/save", json={"blob": '{"activeQuests": []}'})

        assert response.status_code == 400
        assert response.json()["error_code"] == "SAVE_IMPORT_ERROR"
