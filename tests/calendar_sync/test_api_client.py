"""Google Calendar API クライアントのテスト"""

from datetime import datetime, timedelta, timezone

import pytest

from calendar_sync.db.credentials import Credential
from calendar_sync.lib.errors import ExternalAPIError, TimedOutError
from calendar_sync.services.google_calendar.api_client import CalendarApiClient
from fakes import FakeGoogle, make_event


@pytest.fixture
def credential() -> Credential:
    return Credential(
        access_token="valid-access-token",
        refresh_token="refresh",
        expiry_date=datetime.now(timezone.utc) + timedelta(hours=1),
    )


@pytest.mark.asyncio
async def test_fetch_events_request(api_client: CalendarApiClient, google: FakeGoogle, credential):
    """クエリパラメータ・認証ヘッダー"""
    google.events = [make_event("evt-1")]

    events = await api_client.fetch_events(credential, "primary")

    assert [e["id"] for e in events] == ["evt-1"]
    request = google.events_calls[0]
    assert request.url.path == "/calendar/v3/calendars/primary/events"
    assert request.headers["Authorization"] == "Bearer valid-access-token"
    assert request.url.params["singleEvents"] == "true"
    assert request.url.params["orderBy"] == "startTime"
    assert request.url.params["maxResults"] == "100"
    assert "timeMin" not in request.url.params
    assert "timeMax" not in request.url.params


@pytest.mark.asyncio
async def test_fetch_events_time_range_passthrough(api_client, google: FakeGoogle, credential):
    """timeMin / timeMax はそのまま渡す"""
    await api_client.fetch_events(
        credential,
        "primary",
        time_min="2024-01-01T00:00:00Z",
        time_max="2024-02-01T09:00:00+09:00",
    )

    params = google.events_calls[0].url.params
    assert params["timeMin"] == "2024-01-01T00:00:00Z"
    assert params["timeMax"] == "2024-02-01T09:00:00+09:00"


@pytest.mark.asyncio
async def test_fetch_events_quotes_calendar_id(api_client, google: FakeGoogle, credential):
    await api_client.fetch_events(credential, "team@group.calendar.google.com")

    raw_path = google.events_calls[0].url.raw_path.decode()
    assert "/calendars/team%40group.calendar.google.com/events" in raw_path


@pytest.mark.asyncio
async def test_fetch_events_empty(api_client, google: FakeGoogle, credential):
    assert await api_client.fetch_events(credential, "primary") == []


@pytest.mark.asyncio
async def test_fetch_events_api_error(api_client, google: FakeGoogle, credential):
    """APIエラーはプロバイダのメッセージ付き ExternalAPIError"""
    google.events_status = 403

    with pytest.raises(ExternalAPIError, match="Calendar usage limits exceeded."):
        await api_client.fetch_events(credential, "primary")


@pytest.mark.asyncio
async def test_fetch_events_timeout(api_client, google: FakeGoogle, credential):
    google.raise_timeout = True

    with pytest.raises(TimedOutError, match="timed out"):
        await api_client.fetch_events(credential, "primary")
