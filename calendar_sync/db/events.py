"""カレンダーイベントストア

calendar_events への UPSERT（event_id キー）と範囲読み取り。
"""

from datetime import datetime
from typing import Optional, TypedDict

import psycopg2
import psycopg2.extensions

from calendar_sync.lib.errors import StorageError


class DbEvent(TypedDict):
    """calendar_events テーブルレコード"""
    event_id: str
    summary: str
    start_time: datetime | None
    end_time: datetime | None
    description: str


UPSERT_EVENT_SQL = """
    INSERT INTO calendar_events (event_id, summary, start_time, end_time, description)
    VALUES (%s, %s, %s, %s, %s)
    ON CONFLICT (event_id) DO UPDATE SET
        summary = EXCLUDED.summary,
        start_time = EXCLUDED.start_time,
        end_time = EXCLUDED.end_time,
        description = EXCLUDED.description
"""

SELECT_EVENTS_SQL = """
    SELECT event_id, summary, start_time, end_time, description
    FROM calendar_events
    WHERE (%s::timestamptz IS NULL OR start_time >= %s::timestamptz)
      AND (%s::timestamptz IS NULL OR start_time < %s::timestamptz)
    ORDER BY start_time, event_id
"""


def upsert_events(conn: psycopg2.extensions.connection, events: list[DbEvent]) -> int:
    """イベントを1トランザクションで UPSERT

    1件でも失敗した場合は全体をロールバックし、1件も保存しない。

    Args:
        conn: DBコネクション
        events: DBレコード形式のイベントリスト

    Returns:
        保存件数

    Raises:
        StorageError: いずれかの UPSERT が失敗（ロールバック済み）
    """
    if not events:
        return 0

    try:
        with conn.cursor() as cur:
            for event in events:
                cur.execute(
                    UPSERT_EVENT_SQL,
                    (
                        event["event_id"],
                        event["summary"],
                        event["start_time"],
                        event["end_time"],
                        event["description"],
                    ),
                )
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        raise StorageError(f"Failed to insert events: {e}") from e

    return len(events)


def list_events(
    conn: psycopg2.extensions.connection,
    time_min: Optional[datetime] = None,
    time_max: Optional[datetime] = None,
) -> list[DbEvent]:
    """保存済みイベントを開始時刻順に取得

    Args:
        time_min: 開始時刻の下限（含む）
        time_max: 開始時刻の上限（含まない）

    Raises:
        StorageError: クエリ失敗
    """
    try:
        with conn.cursor() as cur:
            cur.execute(SELECT_EVENTS_SQL, (time_min, time_min, time_max, time_max))
            rows = cur.fetchall()
    except psycopg2.Error as e:
        conn.rollback()
        raise StorageError(f"Failed to load events: {e}") from e

    return [
        DbEvent(
            event_id=event_id,
            summary=summary,
            start_time=start_time,
            end_time=end_time,
            description=description,
        )
        for event_id, summary, start_time, end_time, description in rows
    ]
