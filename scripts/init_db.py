#!/usr/bin/env python3
"""テーブル作成スクリプト

oauth_tokens / calendar_events が無ければ作成する。

使用方法:
  python scripts/init_db.py
"""

import sys

from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.db.schema import ensure_schema
from calendar_sync.lib.config import load_config


def main() -> int:
    config = load_config()
    provider = ConnectionProvider(config.database_url, 1, 1)
    try:
        ensure_schema(provider)
    finally:
        provider.close()
    print("Tables ready: oauth_tokens, calendar_events")
    return 0


if __name__ == "__main__":
    sys.exit(main())
