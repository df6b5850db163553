"""Database utilities"""

from calendar_sync.db.connection import ConnectionProvider

__all__ = ["ConnectionProvider"]
