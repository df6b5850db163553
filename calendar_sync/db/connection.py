"""PostgreSQL コネクションプール

論理操作ごとに排他的なコネクションを貸し出し、
すべての終了経路（例外含む）で必ずプールに返却する。

使用方法:
    provider = ConnectionProvider(config.database_url)
    with provider.connection() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
"""

from contextlib import contextmanager
from typing import Iterator

import psycopg2
import psycopg2.extensions
from psycopg2.pool import PoolError, ThreadedConnectionPool

from calendar_sync.lib.errors import DatabaseConnectionError
from calendar_sync.lib.logger import setup_logger

logger = setup_logger(__name__)


class ConnectionProvider:
    """コネクションプールのラッパー（プールは初回利用時に生成）"""

    def __init__(self, database_url: str, min_connections: int = 1, max_connections: int = 10):
        self.database_url = database_url
        self.min_connections = min_connections
        self.max_connections = max_connections
        self._pool: ThreadedConnectionPool | None = None

    def _get_pool(self) -> ThreadedConnectionPool:
        if self._pool is None:
            try:
                self._pool = ThreadedConnectionPool(
                    self.min_connections, self.max_connections, self.database_url
                )
            except psycopg2.Error as e:
                raise DatabaseConnectionError(f"Database connection error: {e}") from e
        return self._pool

    @contextmanager
    def connection(self) -> Iterator[psycopg2.extensions.connection]:
        """プールからコネクションを取得し、終了時に必ず返却

        未完了のトランザクションは返却時にプール側でロールバックされる。

        Raises:
            DatabaseConnectionError: プール生成またはコネクション取得に失敗
        """
        pool = self._get_pool()
        try:
            conn = pool.getconn()
        except (PoolError, psycopg2.Error) as e:
            raise DatabaseConnectionError(f"Database connection error: {e}") from e

        try:
            yield conn
        finally:
            pool.putconn(conn, close=bool(conn.closed))

    def check(self) -> None:
        """疎通確認（SELECT 1）"""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
                conn.rollback()
            except psycopg2.Error as e:
                raise DatabaseConnectionError(f"Database connection error: {e}") from e

    def close(self) -> None:
        """全コネクションを閉じる"""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")
