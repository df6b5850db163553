"""Google Calendar API クライアント

Calendar API v3 の Events.list を呼び出してイベントを取得する。
データ取得のみを行い、DB操作・トークン更新は行わない。

制限:
- 1回の呼び出しで最大100件（先頭ページのみ、ページネーションなし）
- 自動リトライなし（再実行は呼び出し側の責務）
"""

import logging
from typing import Any, Optional, TypedDict
from urllib.parse import quote

import httpx

from calendar_sync.db.credentials import Credential
from calendar_sync.lib.config import Config
from calendar_sync.lib.errors import ExternalAPIError, TimedOutError
from calendar_sync.lib.logger import setup_logger

# =============================================================================
# Configuration
# =============================================================================

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
MAX_RESULTS = 100


# =============================================================================
# Types
# =============================================================================

class GCalDateTime(TypedDict, total=False):
    """Google Calendar API DateTime 型"""
    date: str  # YYYY-MM-DD（終日イベント）
    dateTime: str  # ISO 8601（通常イベント）
    timeZone: str


class GCalEvent(TypedDict, total=False):
    """Google Calendar API Event レスポンス型"""
    id: str
    status: str
    summary: str
    description: str
    start: GCalDateTime
    end: GCalDateTime


def provider_error_message(response: httpx.Response) -> str:
    """エラーレスポンスからプロバイダのメッセージを抽出

    Google は API エラーを {"error": {"message": ...}}、
    OAuth エラーを {"error": "...", "error_description": "..."} で返す。
    """
    try:
        data = response.json()
    except ValueError:
        return f"{response.status_code} - {response.text}"

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str):
        description = data.get("error_description")
        return f"{error}: {description}" if description else error
    return f"{response.status_code} - {response.text}"


class CalendarApiClient:
    """Calendar API v3 クライアント（呼び出しごとにタイムアウトを適用）"""

    def __init__(
        self,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.timeout = config.http_timeout_seconds
        self._transport = transport
        self.logger = logger or setup_logger(__name__)

    async def fetch_events(
        self,
        credential: Credential,
        calendar_id: str,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
    ) -> list[GCalEvent]:
        """イベントを取得（開始時刻昇順、最大100件）

        Args:
            credential: 有効な認証情報
            calendar_id: カレンダーID（"primary" など）
            time_min: ISO 8601（そのまま API に渡す）
            time_max: ISO 8601（そのまま API に渡す）

        Returns:
            イベントのリスト（APIレスポンスそのまま）

        Raises:
            TimedOutError: タイムアウト
            ExternalAPIError: 通信エラー・APIエラー
        """
        params: dict[str, Any] = {
            "maxResults": MAX_RESULTS,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if time_min is not None:
            params["timeMin"] = time_min
        if time_max is not None:
            params["timeMax"] = time_max

        url = f"{CALENDAR_API_BASE}/calendars/{quote(calendar_id, safe='')}/events"
        headers = {"Authorization": f"Bearer {credential.access_token}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise TimedOutError(f"Google API request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ExternalAPIError(f"Google API error: {e}") from e

        if not response.is_success:
            raise ExternalAPIError(f"Google API error: {provider_error_message(response)}")

        try:
            data = response.json()
        except ValueError as e:
            raise ExternalAPIError(f"Google API error: invalid JSON response ({e})") from e

        events: list[GCalEvent] = data.get("items") or []
        self.logger.info(f"Fetched {len(events)} events from calendar {calendar_id}")
        return events
