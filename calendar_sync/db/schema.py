"""テーブル定義

oauth_tokens は id = 1 の1行のみを保持するシングルトンテーブル。
"""

from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.lib.logger import setup_logger

logger = setup_logger(__name__)

CREATE_OAUTH_TOKENS = """
    CREATE TABLE IF NOT EXISTS oauth_tokens (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        access_token TEXT NOT NULL,
        refresh_token TEXT NOT NULL DEFAULT '',
        expiry_date TIMESTAMPTZ NOT NULL
    )
"""

CREATE_CALENDAR_EVENTS = """
    CREATE TABLE IF NOT EXISTS calendar_events (
        event_id TEXT PRIMARY KEY,
        summary TEXT NOT NULL DEFAULT '',
        start_time TIMESTAMPTZ,
        end_time TIMESTAMPTZ,
        description TEXT NOT NULL DEFAULT ''
    )
"""

CREATE_CALENDAR_EVENTS_START_INDEX = """
    CREATE INDEX IF NOT EXISTS calendar_events_start_time_idx
        ON calendar_events (start_time)
"""

STATEMENTS = [CREATE_OAUTH_TOKENS, CREATE_CALENDAR_EVENTS, CREATE_CALENDAR_EVENTS_START_INDEX]


def ensure_schema(provider: ConnectionProvider) -> None:
    """テーブルが無ければ作成"""
    with provider.connection() as conn:
        try:
            with conn.cursor() as cur:
                for statement in STATEMENTS:
                    cur.execute(statement)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
    logger.info("Schema ready: oauth_tokens, calendar_events")
