"""Google Calendar 同期モジュール

OAuth 認証情報のライフサイクル管理と、イベントの取得・保存を行う。

モジュール構成:
- auth.py: 同意URL生成・認可コード交換・トークン更新
- api_client.py: Calendar API v3 からのイベント取得
- sync_events.py: イベント同期パイプライン（検証 → 認証 → 取得 → 1トランザクションで保存）
"""

from calendar_sync.services.google_calendar.api_client import CalendarApiClient
from calendar_sync.services.google_calendar.auth import TokenManager
from calendar_sync.services.google_calendar.sync_events import EventSyncPipeline, SyncResult

__all__ = ["CalendarApiClient", "EventSyncPipeline", "SyncResult", "TokenManager"]
