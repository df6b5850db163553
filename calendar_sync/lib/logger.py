"""ロギング設定

すべてのモジュールは setup_logger(__name__) でロガーを取得する。
レベル未指定時は環境変数 LOG_LEVEL（既定 INFO）に従う。
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """stdout に出力するロガーを取得

    同じ名前で複数回呼ばれてもハンドラーは1つだけ保持する。

    Args:
        name: ロガー名（通常は __name__）
        level: ログレベル名（DEBUG, INFO, WARNING, ERROR）
    """
    logger = logging.getLogger(name)
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False

    return logger


def log_failure(logger: logging.Logger, operation: str, error: BaseException) -> None:
    """失敗をERRORログに記録（操作名・メッセージ・スタックトレース付き）

    Args:
        logger: 出力先ロガー
        operation: 失敗した操作名（例: "sync_events"）
        error: 発生した例外
    """
    logger.error(
        f"{operation} failed: {error}",
        exc_info=(type(error), error, error.__traceback__),
        extra={"operation": operation, "error_type": type(error).__name__},
    )
