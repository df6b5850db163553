"""FastAPI アプリケーション

create_app() で依存（コネクションプール・トークン管理・同期パイプライン）を組み立て、
app.state に保持する。テストでは任意の依存を差し替え可能。
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from calendar_sync.api import responses
from calendar_sync.api.routes import router as calendar_router
from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.lib.config import Config, get_config
from calendar_sync.lib.errors import CalendarSyncError
from calendar_sync.lib.logger import log_failure, setup_logger
from calendar_sync.services.google_calendar.api_client import CalendarApiClient
from calendar_sync.services.google_calendar.auth import TokenManager
from calendar_sync.services.google_calendar.sync_events import EventSyncPipeline

logger = setup_logger(__name__)


def create_app(
    config: Optional[Config] = None,
    provider: Optional[ConnectionProvider] = None,
    token_manager: Optional[TokenManager] = None,
    pipeline: Optional[EventSyncPipeline] = None,
) -> FastAPI:
    """アプリケーションを生成"""
    config = config or get_config()
    provider = provider or ConnectionProvider(
        config.database_url, config.db_pool_min, config.db_pool_max
    )
    token_manager = token_manager or TokenManager(config, provider)
    pipeline = pipeline or EventSyncPipeline(
        provider,
        token_manager,
        CalendarApiClient(config),
        calendar_timezone=config.calendar_timezone,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            provider.check()
            logger.info("Database connected successfully")
        except CalendarSyncError as e:
            log_failure(logger, "startup database check", e)
        yield
        provider.close()

    app = FastAPI(title="calendar-sync", lifespan=lifespan)
    app.state.config = config
    app.state.provider = provider
    app.state.token_manager = token_manager
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )

    app.include_router(calendar_router)

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "API RUNNING"

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "OK"

    @app.exception_handler(CalendarSyncError)
    async def handle_calendar_sync_error(request: Request, exc: CalendarSyncError) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return responses.failure(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        message = first.get("msg", "Invalid request")
        logger.warning(f"{request.method} {request.url.path} -> 400: {message}")
        return responses.failure(400, message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        log_failure(logger, f"{request.method} {request.url.path}", exc)
        return responses.failure(500, "Internal Server Error")

    return app
