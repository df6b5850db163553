"""Google Calendar イベント同期

1回の同期呼び出しの流れ:
    検証 → 認証情報取得（期限切れなら更新）→ イベント取得
    → 0件なら何もせず終了 / 1件以上なら1トランザクションで UPSERT → コミット

UPSERT が1件でも失敗した場合は全体をロールバックし、1件も保存しない。
リモートで削除されたイベントはローカルから削除しない（追加・更新のみ）。
"""

import logging
import time
from datetime import datetime, tzinfo
from typing import Any, Optional, TypedDict
from zoneinfo import ZoneInfo

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.db.events import DbEvent, upsert_events
from calendar_sync.lib.errors import (
    CalendarSyncError,
    ExternalAPIError,
    StorageError,
    ValidationError,
)
from calendar_sync.lib.logger import log_failure, setup_logger
from calendar_sync.services.google_calendar.api_client import (
    CalendarApiClient,
    GCalDateTime,
    GCalEvent,
)
from calendar_sync.services.google_calendar.auth import TokenManager

DEFAULT_CALENDAR_ID = "primary"


# =============================================================================
# Request
# =============================================================================


def parse_iso_instant(value: str) -> datetime:
    """ISO 8601 の日時（UTC オフセット必須、Z サフィックス可）をパース

    日付のみ・オフセット無しの値は拒否する。

    Raises:
        ValueError: ISO 8601 の時点として解釈できない
    """
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is None or parsed.tzinfo is None:
        raise ValueError(f"'{value}' must be an ISO 8601 date-time with a UTC offset")
    return parsed


class SyncRequest(BaseModel):
    """同期リクエスト"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    calendar_id: StrictStr = Field(default=DEFAULT_CALENDAR_ID, alias="calendarId", min_length=1)
    time_min: Optional[StrictStr] = Field(default=None, alias="timeMin")
    time_max: Optional[StrictStr] = Field(default=None, alias="timeMax")

    @field_validator("time_min", "time_max")
    @classmethod
    def _check_iso(cls, value: Optional[str]) -> Optional[str]:
        # 検証のみ。API にはそのままの文字列を渡す
        if value is not None:
            parse_iso_instant(value)
        return value


class SyncResult(TypedDict):
    """同期結果"""
    success: bool
    state: str  # "committed" / "no_events"
    count: int
    message: str
    elapsed_seconds: float


def parse_sync_request(payload: Any) -> SyncRequest:
    """リクエストボディを検証

    Raises:
        ValidationError: 形式不正
    """
    if payload is None:
        payload = {}
    if isinstance(payload, SyncRequest):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return SyncRequest.model_validate(payload)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise ValidationError(f"{field}: {first['msg']}") from None


# =============================================================================
# Transform Functions (API → DB)
# =============================================================================


def _to_timestamp(value: Optional[GCalDateTime], tz: tzinfo) -> datetime | None:
    """API の DateTime を TIMESTAMPTZ に変換（終日イベントは tz の0時）"""
    if not value:
        return None
    if value.get("dateTime"):
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)
    if value.get("date"):
        return datetime.fromisoformat(value["date"]).replace(tzinfo=tz)
    return None


def to_db_event(event: GCalEvent, tz: tzinfo) -> DbEvent:
    """API型 → DB型への変換

    Raises:
        ExternalAPIError: id 欠損・日時の形式不正
    """
    event_id = event.get("id")
    if not event_id:
        raise ExternalAPIError("Google API error: event without id")

    try:
        start_time = _to_timestamp(event.get("start"), tz)
        end_time = _to_timestamp(event.get("end"), tz)
    except ValueError as e:
        raise ExternalAPIError(f"Google API error: malformed time in event {event_id}: {e}") from e

    return DbEvent(
        event_id=event_id,
        summary=event.get("summary") or "",
        start_time=start_time,
        end_time=end_time,
        description=event.get("description") or "",
    )


# =============================================================================
# Pipeline
# =============================================================================


class EventSyncPipeline:
    """イベント同期パイプライン"""

    def __init__(
        self,
        provider: ConnectionProvider,
        token_manager: TokenManager,
        api_client: CalendarApiClient,
        calendar_timezone: str = "UTC",
        logger: Optional[logging.Logger] = None,
    ):
        self.provider = provider
        self.token_manager = token_manager
        self.api_client = api_client
        self.tz = ZoneInfo(calendar_timezone)
        self.logger = logger or setup_logger(__name__)

    async def sync_events(self, payload: Any = None) -> SyncResult:
        """イベントを同期

        Args:
            payload: {calendarId?, timeMin?, timeMax?}

        Returns:
            同期結果

        Raises:
            ValidationError: リクエスト不正（DB・API には触れない）
            NotFoundError / AuthError: 認証情報の取得・更新失敗
            ExternalAPIError / TimedOutError: イベント取得失敗
            StorageError: 保存失敗（ロールバック済み、0件保存）
            DatabaseConnectionError: コネクション取得失敗
        """
        start_time = time.perf_counter()

        try:
            request = parse_sync_request(payload)
            self.logger.info(
                f"Starting Google Calendar events sync "
                f"(calendar: {request.calendar_id}, timeMin: {request.time_min}, timeMax: {request.time_max})"
            )

            # 1. 認証情報（期限切れなら更新・保存完了まで待つ）
            credential = await self.token_manager.load_valid_credential()

            # 2. API からデータ取得
            events = await self.api_client.fetch_events(
                credential,
                request.calendar_id,
                time_min=request.time_min,
                time_max=request.time_max,
            )

            if not events:
                elapsed = round(time.perf_counter() - start_time, 2)
                self.logger.info(f"No events found ({elapsed}s)")
                return SyncResult(
                    success=True,
                    state="no_events",
                    count=0,
                    message="No events found",
                    elapsed_seconds=elapsed,
                )

            # 3. DB保存（1トランザクション）
            db_events = [to_db_event(e, self.tz) for e in events]
            with self.provider.connection() as conn:
                count = upsert_events(conn, db_events)

        except StorageError as e:
            log_failure(self.logger, "sync_events", e)
            self.logger.warning("Sync rolled back: 0 events persisted")
            raise
        except CalendarSyncError as e:
            log_failure(self.logger, "sync_events", e)
            raise

        elapsed = round(time.perf_counter() - start_time, 2)
        self.logger.info(f"Google Calendar events sync completed: {count} events in {elapsed}s")

        return SyncResult(
            success=True,
            state="committed",
            count=count,
            message=f"Synced {count} events",
            elapsed_seconds=elapsed,
        )
