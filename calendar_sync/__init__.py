"""Google Calendar → PostgreSQL 同期サービス"""

__version__ = "0.1.0"
