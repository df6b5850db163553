"""設定の読み込み

環境変数（ローカル開発時は .env）から Config を組み立てる。
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:5500"


@dataclass
class Config:
    database_url: str
    google_client_id: str
    google_client_secret: str
    google_redirect_uri: str
    db_pool_min: int = 1
    db_pool_max: int = 10
    http_timeout_seconds: float = 30.0
    calendar_timezone: str = "UTC"  # 終日イベントの0時をどのタイムゾーンで解釈するか
    cors_origins: list[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))
    port: int = 3000
    log_level: str = "INFO"


_config: Config | None = None


def _require(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ValueError(f"{name} environment variable is required")
    return value


def load_config() -> Config:
    """環境変数から設定を読み込み

    Raises:
        ValueError: 必須の環境変数が未設定
    """
    load_dotenv()

    cors = os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)

    return Config(
        database_url=_require("DIRECT_DATABASE_URL"),
        google_client_id=_require("GOOGLE_CLIENT_ID"),
        google_client_secret=_require("GOOGLE_CLIENT_SECRET"),
        google_redirect_uri=_require("GOOGLE_REDIRECT_URI"),
        db_pool_min=int(os.environ.get("DB_POOL_MIN", "1")),
        db_pool_max=int(os.environ.get("DB_POOL_MAX", "10")),
        http_timeout_seconds=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "30")),
        calendar_timezone=os.environ.get("CALENDAR_TIMEZONE", "UTC"),
        cors_origins=[o.strip() for o in cors.split(",") if o.strip()],
        port=int(os.environ.get("PORT", "3000")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )


def get_config() -> Config:
    """設定を取得（シングルトン）"""
    global _config

    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """設定キャッシュをリセット（テスト用）"""
    global _config
    _config = None
