"""例外定義

すべての失敗は CalendarSyncError のサブクラスとして表現し、
HTTP境界でレスポンスエンベロープに変換する（status_code を使用）。
"""


class CalendarSyncError(Exception):
    """同期サービスの基底例外"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CalendarSyncError):
    """入力不正（ローカル、リトライ不可）"""

    status_code = 400


class DatabaseConnectionError(CalendarSyncError):
    """コネクションプール / DB に到達できない"""

    status_code = 500


class NotFoundError(CalendarSyncError):
    """保存済み認証情報などが存在しない"""

    status_code = 404


class AuthError(CalendarSyncError):
    """認可コード交換またはトークン更新をプロバイダが拒否"""

    status_code = 400


class StorageError(CalendarSyncError):
    """DB読み書き失敗（トランザクションはロールバック済み）"""

    status_code = 400


class ExternalAPIError(CalendarSyncError):
    """プロバイダ読み取りAPIの失敗（認証以外）"""

    status_code = 400


class TimedOutError(ExternalAPIError):
    """プロバイダ呼び出しがタイムアウト"""
