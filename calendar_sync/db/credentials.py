"""OAuth 認証情報ストア

oauth_tokens（id = 1 固定のシングルトン行）への読み取り・UPSERTのみを提供。
refresh_token は空値で上書きしない（更新レスポンスに含まれないことがあるため）。
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import psycopg2
import psycopg2.extensions

from calendar_sync.lib.errors import StorageError

CREDENTIAL_ID = 1

SELECT_CREDENTIAL_SQL = """
    SELECT access_token, refresh_token, expiry_date
    FROM oauth_tokens
    WHERE id = %s
"""

UPSERT_CREDENTIAL_SQL = """
    INSERT INTO oauth_tokens (id, access_token, refresh_token, expiry_date)
    VALUES (%s, %s, %s, %s)
    ON CONFLICT (id) DO UPDATE SET
        access_token = EXCLUDED.access_token,
        refresh_token = COALESCE(NULLIF(EXCLUDED.refresh_token, ''), oauth_tokens.refresh_token),
        expiry_date = EXCLUDED.expiry_date
"""

# 直前に読んだ expiry_date が変わっていなければ更新（楽観的ロック）
UPDATE_REFRESHED_SQL = """
    UPDATE oauth_tokens SET
        access_token = %s,
        refresh_token = COALESCE(NULLIF(%s, ''), refresh_token),
        expiry_date = %s
    WHERE id = %s AND expiry_date = %s
"""


@dataclass(frozen=True)
class Credential:
    """OAuth 認証情報（不変値。更新時は新しい値を生成する）"""

    access_token: str
    refresh_token: str
    expiry_date: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """有効期限切れか（expiry_date <= 現在時刻）"""
        now = now or datetime.now(timezone.utc)
        return self.expiry_date <= now

    def to_dict(self) -> dict[str, str]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry_date": self.expiry_date.isoformat(),
        }


def fetch_credential(conn: psycopg2.extensions.connection) -> Credential | None:
    """保存済みの認証情報を取得（無ければ None）

    Raises:
        StorageError: クエリ失敗
    """
    try:
        with conn.cursor() as cur:
            cur.execute(SELECT_CREDENTIAL_SQL, (CREDENTIAL_ID,))
            row = cur.fetchone()
    except psycopg2.Error as e:
        conn.rollback()
        raise StorageError(f"Failed to load tokens: {e}") from e

    if row is None:
        return None

    access_token, refresh_token, expiry_date = row
    if expiry_date.tzinfo is None:
        # TIMESTAMP（タイムゾーン無し）列は UTC として扱う
        expiry_date = expiry_date.replace(tzinfo=timezone.utc)
    return Credential(
        access_token=access_token,
        refresh_token=refresh_token or "",
        expiry_date=expiry_date,
    )


def upsert_credential(conn: psycopg2.extensions.connection, credential: Credential) -> None:
    """認証情報を保存（id = 1 に UPSERT）

    Raises:
        StorageError: 書き込み失敗（ロールバック済み）
    """
    try:
        with conn.cursor() as cur:
            cur.execute(
                UPSERT_CREDENTIAL_SQL,
                (
                    CREDENTIAL_ID,
                    credential.access_token,
                    credential.refresh_token or "",
                    credential.expiry_date,
                ),
            )
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        raise StorageError(f"Failed to save tokens: {e}") from e


def update_refreshed_credential(
    conn: psycopg2.extensions.connection,
    credential: Credential,
    previous_expiry: datetime,
) -> bool:
    """更新後の認証情報を保存

    Args:
        conn: DBコネクション
        credential: 更新後の認証情報
        previous_expiry: 更新前に読み取った expiry_date

    Returns:
        更新できたか（False の場合は他の呼び出しが先に更新済み）

    Raises:
        StorageError: 書き込み失敗（ロールバック済み、旧値はそのまま）
    """
    try:
        with conn.cursor() as cur:
            cur.execute(
                UPDATE_REFRESHED_SQL,
                (
                    credential.access_token,
                    credential.refresh_token or "",
                    credential.expiry_date,
                    CREDENTIAL_ID,
                    previous_expiry,
                ),
            )
            updated = cur.rowcount == 1
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        raise StorageError(f"Failed to update tokens: {e}") from e

    return updated
