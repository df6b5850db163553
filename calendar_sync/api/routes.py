"""カレンダー API エンドポイント

  GET  /calendar/auth            同意画面へリダイレクト
  GET  /calendar/oauth2callback  認可コードを交換して保存
  POST /calendar/sync            イベント同期
  GET  /calendar/events          保存済みイベントの参照
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from calendar_sync.api import responses
from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.db.events import list_events
from calendar_sync.lib.errors import AuthError, ValidationError
from calendar_sync.lib.logger import setup_logger
from calendar_sync.services.google_calendar.auth import TokenManager
from calendar_sync.services.google_calendar.sync_events import (
    EventSyncPipeline,
    parse_iso_instant,
)

logger = setup_logger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _token_manager(request: Request) -> TokenManager:
    return request.app.state.token_manager


def _pipeline(request: Request) -> EventSyncPipeline:
    return request.app.state.pipeline


def _provider(request: Request) -> ConnectionProvider:
    return request.app.state.provider


@router.get("/auth")
async def calendar_auth(request: Request) -> RedirectResponse:
    """同意画面（Google）へリダイレクト"""
    logger.info(f"{request.url.path} {dict(request.query_params)}")
    return RedirectResponse(url=_token_manager(request).build_authorization_url(), status_code=302)


@router.get("/oauth2callback")
async def oauth2_callback(
    request: Request,
    code: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
) -> JSONResponse:
    """認可コードをトークンに交換して保存"""
    logger.info(f"{request.url.path} (code present: {bool(code)})")

    if error:
        raise AuthError(f"OAuth error: authorization denied ({error})")
    if not code:
        raise ValidationError("No authorization code provided")

    credential = await _token_manager(request).exchange_code(code)
    return responses.success(
        message="Authenticated successfully",
        tokens=credential.to_dict(),
    )


@router.post("/sync")
async def sync_calendar(
    request: Request,
    payload: Optional[dict[str, Any]] = Body(default=None),
) -> JSONResponse:
    """イベント同期"""
    logger.info(f"{request.url.path} {payload}")
    result = await _pipeline(request).sync_events(payload)
    return responses.success(message=result["message"])


@router.get("/events")
async def get_events(
    request: Request,
    time_min: Optional[str] = Query(default=None, alias="timeMin"),
    time_max: Optional[str] = Query(default=None, alias="timeMax"),
) -> JSONResponse:
    """保存済みイベントを開始時刻順に返す"""
    try:
        lower = parse_iso_instant(time_min) if time_min else None
        upper = parse_iso_instant(time_max) if time_max else None
    except ValueError as e:
        raise ValidationError(str(e)) from None

    with _provider(request).connection() as conn:
        events = list_events(conn, lower, upper)

    return responses.success(message=f"Found {len(events)} events", data=events)
