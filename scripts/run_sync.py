#!/usr/bin/env python3
"""イベント同期を1回実行（cron / スケジューラ用）

失敗時は終了コード1を返す。リトライは呼び出し側で行う。

使用方法:
  python scripts/run_sync.py
  python scripts/run_sync.py --calendar-id primary --time-min 2024-01-01T00:00:00Z
"""

import argparse
import asyncio
import sys

from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.lib.config import load_config
from calendar_sync.lib.errors import CalendarSyncError
from calendar_sync.services.google_calendar import (
    CalendarApiClient,
    EventSyncPipeline,
    TokenManager,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Google Calendar イベント同期")
    parser.add_argument("--calendar-id", default=None, help="カレンダーID（デフォルト: primary）")
    parser.add_argument("--time-min", default=None, help="ISO 8601")
    parser.add_argument("--time-max", default=None, help="ISO 8601")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    config = load_config()

    payload = {}
    if args.calendar_id:
        payload["calendarId"] = args.calendar_id
    if args.time_min:
        payload["timeMin"] = args.time_min
    if args.time_max:
        payload["timeMax"] = args.time_max

    provider = ConnectionProvider(config.database_url, 1, 2)
    token_manager = TokenManager(config, provider)
    pipeline = EventSyncPipeline(
        provider,
        token_manager,
        CalendarApiClient(config),
        calendar_timezone=config.calendar_timezone,
    )

    try:
        result = asyncio.run(pipeline.sync_events(payload))
    except CalendarSyncError as e:
        print(f"Sync failed: {e}")
        return 1
    finally:
        provider.close()

    print(result["message"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
