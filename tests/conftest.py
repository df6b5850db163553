"""共通フィクスチャ"""

import logging

import pytest

from calendar_sync.lib.config import Config
from calendar_sync.services.google_calendar import (
    CalendarApiClient,
    EventSyncPipeline,
    TokenManager,
)
from fakes import FakeDatabase, FakeGoogle, FakeProvider


@pytest.fixture
def config() -> Config:
    return Config(
        database_url="postgresql://localhost:5432/test",
        google_client_id="test-client-id.apps.googleusercontent.com",
        google_client_secret="test-client-secret",
        google_redirect_uri="http://localhost:3000/calendar/oauth2callback",
        http_timeout_seconds=5.0,
    )


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("tests.calendar_sync")


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def provider(db) -> FakeProvider:
    return FakeProvider(db)


@pytest.fixture
def google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def token_manager(config, provider, google, test_logger) -> TokenManager:
    return TokenManager(config, provider, transport=google.transport, logger=test_logger)


@pytest.fixture
def api_client(config, google, test_logger) -> CalendarApiClient:
    return CalendarApiClient(config, transport=google.transport, logger=test_logger)


@pytest.fixture
def pipeline(provider, token_manager, api_client, test_logger) -> EventSyncPipeline:
    return EventSyncPipeline(provider, token_manager, api_client, logger=test_logger)
