"""HTTP エンドポイントのテスト"""

from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

from calendar_sync.api.app import create_app
from fakes import FakeDatabase, FakeGoogle, FakeProvider, make_event, store_token


@pytest.fixture
def app(config, provider, token_manager, pipeline):
    return create_app(config=config, provider=provider, token_manager=token_manager, pipeline=pipeline)


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
        follow_redirects=False,
    ) as client:
        yield client


# =============================================================================
# Auth
# =============================================================================


@pytest.mark.asyncio
async def test_auth_redirects_to_consent(client):
    resp = await client.get("/calendar/auth")

    assert resp.status_code == 302
    location = resp.headers["location"]
    assert location.startswith("https://accounts.google.com/o/oauth2/v2/auth?")
    assert "access_type=offline" in location
    assert "prompt=consent" in location


@pytest.mark.asyncio
async def test_callback_missing_code(client, google: FakeGoogle):
    resp = await client.get("/calendar/oauth2callback")

    assert resp.status_code == 400
    assert resp.json() == {"result": "Failure", "code": 400, "message": "No authorization code provided"}
    assert google.calls == []


@pytest.mark.asyncio
async def test_callback_success(client, db: FakeDatabase, google: FakeGoogle):
    google.token_response["refresh_token"] = "issued-refresh-token"

    resp = await client.get("/calendar/oauth2callback", params={"code": "auth-code"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["result"] == "Success"
    assert body["code"] == 200
    assert body["message"] == "Authenticated successfully"
    assert body["tokens"]["access_token"] == "new-access-token"
    assert body["tokens"]["refresh_token"] == "issued-refresh-token"
    assert db.token[0] == "new-access-token"


@pytest.mark.asyncio
async def test_callback_provider_denied(client, google: FakeGoogle):
    resp = await client.get("/calendar/oauth2callback", params={"error": "access_denied"})

    assert resp.status_code == 400
    assert resp.json()["result"] == "Failure"
    assert "access_denied" in resp.json()["message"]
    assert google.calls == []


@pytest.mark.asyncio
async def test_callback_code_rejected(client, google: FakeGoogle):
    google.token_status = 400

    resp = await client.get("/calendar/oauth2callback", params={"code": "expired-code"})

    assert resp.status_code == 400
    assert resp.json()["message"].startswith("OAuth error:")


@pytest.mark.asyncio
async def test_callback_storage_failure(client, db: FakeDatabase):
    db.fail_token_writes = True

    resp = await client.get("/calendar/oauth2callback", params={"code": "auth-code"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["message"].startswith("Failed to save tokens")
    assert "tokens" not in body


# =============================================================================
# Sync
# =============================================================================


@pytest.mark.asyncio
async def test_sync_success(client, db: FakeDatabase, google: FakeGoogle):
    store_token(db, expired=True)
    google.events = [make_event("evt-1"), make_event("evt-2"), make_event("evt-3")]

    resp = await client.post(
        "/calendar/sync",
        json={"calendarId": "primary", "timeMin": "2024-01-01T00:00:00Z"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"result": "Success", "code": 200, "message": "Synced 3 events"}


@pytest.mark.asyncio
async def test_sync_without_body(client, db: FakeDatabase, google: FakeGoogle):
    store_token(db)

    resp = await client.post("/calendar/sync")

    assert resp.status_code == 200
    assert resp.json()["message"] == "No events found"
    assert google.events_calls[0].url.path.endswith("/calendars/primary/events")


@pytest.mark.asyncio
async def test_sync_validation_error(client, provider: FakeProvider, google: FakeGoogle):
    resp = await client.post("/calendar/sync", json={"timeMin": "not-a-date"})

    assert resp.status_code == 400
    assert resp.json()["result"] == "Failure"
    assert provider.acquired == 0
    assert google.calls == []


@pytest.mark.asyncio
async def test_sync_non_object_body(client):
    resp = await client.post("/calendar/sync", json=["primary"])

    assert resp.status_code == 400
    assert resp.json()["result"] == "Failure"


@pytest.mark.asyncio
async def test_sync_not_found(client):
    resp = await client.post("/calendar/sync", json={})

    assert resp.status_code == 404
    assert resp.json() == {"result": "Failure", "code": 404, "message": "No OAuth tokens found"}


@pytest.mark.asyncio
async def test_sync_connection_error(client, provider: FakeProvider):
    provider.fail_connect = True

    resp = await client.post("/calendar/sync", json={})

    assert resp.status_code == 500
    assert resp.json()["code"] == 500


@pytest.mark.asyncio
async def test_sync_provider_error(client, db: FakeDatabase, google: FakeGoogle):
    store_token(db)
    google.events_status = 403

    resp = await client.post("/calendar/sync", json={})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Google API error: Calendar usage limits exceeded."


# =============================================================================
# Events / health
# =============================================================================


@pytest.mark.asyncio
async def test_list_events(client, db: FakeDatabase, google: FakeGoogle):
    store_token(db)
    google.events = [make_event("evt-1", day=1), make_event("evt-2", day=15)]
    await client.post("/calendar/sync", json={})

    resp = await client.get("/calendar/events", params={"timeMin": "2024-01-10T00:00:00Z"})

    assert resp.status_code == 200
    body = resp.json()
    assert [e["event_id"] for e in body["data"]] == ["evt-2"]
    assert datetime.fromisoformat(body["data"][0]["start_time"]) == datetime(2024, 1, 15, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_list_events_invalid_range(client):
    resp = await client.get("/calendar/events", params={"timeMax": "soon"})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_events_date_only_range(client):
    resp = await client.get("/calendar/events", params={"timeMin": "2024-01-10"})

    assert resp.status_code == 400
    assert "UTC offset" in resp.json()["message"]


@pytest.mark.asyncio
async def test_root_and_health(client):
    root = await client.get("/")
    health = await client.get("/health")

    assert root.status_code == 200
    assert root.text == "API RUNNING"
    assert health.status_code == 200
    assert health.text == "OK"
