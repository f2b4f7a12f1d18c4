"""Tests for the storage API routes."""

import httpx
import pytest
import pytest_asyncio

from tests.factories import make_document, make_player, make_week


@pytest_asyncio.fixture
async def api(storage_app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=storage_app), base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_get_root_seeds_default(api):
    response = await api.get("/api/storage/root")

    assert response.status_code == 200
    body = response.json()
    assert body["currentWeek"] == 1
    assert list(body["weeks"]) == ["1"]


@pytest.mark.asyncio
async def test_put_root_normalizes_and_syncs_weeks(api):
    document = make_document([make_player("a", have=True)])
    document["weeks"]["3"] = make_week()
    document["currentWeek"] = 3

    response = await api.put("/api/storage/root", json=document)

    assert response.status_code == 200
    assert response.json()["weeks"]["1"]["isReadOnly"] is True
    weeks = (await api.get("/api/storage/weeks")).json()
    assert [week["weekNumber"] for week in weeks] == [1, 3]


@pytest.mark.asyncio
async def test_put_root_rejects_non_object(api):
    response = await api.put("/api/storage/root", json=[1, 2, 3])

    assert response.status_code == 400
    assert response.json() == {"message": "Root payload must be a plain object"}


@pytest.mark.asyncio
@pytest.mark.parametrize("week", ["0", "-2", "abc", "1.5"])
async def test_invalid_week_number_is_bad_request(api, week):
    response = await api.get(f"/api/storage/weeks/{week}")

    assert response.status_code == 400
    assert response.json()["message"] == "weekNumber must be a positive integer"


@pytest.mark.asyncio
async def test_missing_week_is_not_found(api):
    assert (await api.get("/api/storage/weeks/8")).status_code == 404
    response = await api.delete("/api/storage/weeks/8")

    assert response.status_code == 404
    assert response.json() == {"message": "Week not found"}


@pytest.mark.asyncio
async def test_post_week_creates_default_when_payload_absent(api):
    response = await api.post("/api/storage/weeks", json={"weekNumber": 2})

    assert response.status_code == 201
    assert response.json()["players"] == []
    root = (await api.get("/api/storage/root")).json()
    assert "2" in root["weeks"]


@pytest.mark.asyncio
async def test_post_week_requires_week_number(api):
    response = await api.post("/api/storage/weeks", json={"payload": {}})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_put_week_mirrors_into_root(api):
    response = await api.put("/api/storage/weeks/1", json=make_week([make_player("z")]))

    assert response.status_code == 200
    root = (await api.get("/api/storage/root")).json()
    assert root["weeks"]["1"]["players"][0]["id"] == "z"


@pytest.mark.asyncio
async def test_delete_last_week_recreates_week_one(api):
    await api.put("/api/storage/root", json={"currentWeek": 4, "weeks": {"4": make_week()}})

    response = await api.delete("/api/storage/weeks/4")

    assert response.status_code == 204
    root = (await api.get("/api/storage/root")).json()
    assert root["currentWeek"] == 1
    assert list(root["weeks"]) == ["1"]


@pytest.mark.asyncio
async def test_delete_moves_current_week_to_highest_remaining(api):
    await api.put(
        "/api/storage/root",
        json={"currentWeek": 3, "weeks": {"1": make_week(), "2": make_week(), "3": make_week()}},
    )

    await api.delete("/api/storage/weeks/3")

    root = (await api.get("/api/storage/root")).json()
    assert root["currentWeek"] == 2
    assert root["weeks"]["2"]["isReadOnly"] is False


@pytest.mark.asyncio
async def test_unexpected_error_is_internal_server_error(api, root_store, monkeypatch):
    def explode():
        raise RuntimeError("database is locked")

    monkeypatch.setattr(root_store, "get_root_data", explode)

    response = await api.get("/api/storage/root")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error", "details": "database is locked"}


@pytest.mark.asyncio
async def test_health(api):
    assert (await api.get("/health")).json() == {"status": "ok"}
