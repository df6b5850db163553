"""HTTP API"""

from calendar_sync.api.app import create_app

__all__ = ["create_app"]
