"""API サーバー起動

Usage:
    python -m calendar_sync.api.serve
"""

import uvicorn

from calendar_sync.api.app import create_app
from calendar_sync.lib.config import get_config


def main() -> None:
    """HTTPサーバーを起動"""
    config = get_config()
    app = create_app(config)
    print(f"Server running at http://0.0.0.0:{config.port}")
    uvicorn.run(app, host="0.0.0.0", port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
