"""Google OAuth 2.0 トークン管理

同意URLの生成、認可コードの交換、有効期限の判定とトークン更新を担当。
認証情報は Credential（不変値）として受け渡し、共有状態は持たない。

トークン更新は asyncio.Lock で直列化し、DB更新は直前に読んだ expiry_date を
条件にした楽観的ロックで保護する（別プロセスとの競合時は保存済みの値を使用）。
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, TypedDict
from urllib.parse import urlencode

import httpx

from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.db.credentials import (
    Credential,
    fetch_credential,
    update_refreshed_credential,
    upsert_credential,
)
from calendar_sync.lib.config import Config
from calendar_sync.lib.errors import (
    AuthError,
    CalendarSyncError,
    ExternalAPIError,
    NotFoundError,
    TimedOutError,
    ValidationError,
)
from calendar_sync.lib.logger import log_failure, setup_logger
from calendar_sync.services.google_calendar.api_client import provider_error_message

# =============================================================================
# Configuration
# =============================================================================

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPE = "https://www.googleapis.com/auth/calendar.readonly"
DEFAULT_EXPIRES_IN_SEC = 3600


class TokenResponse(TypedDict, total=False):
    """Token endpoint response"""
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str
    scope: str


class TokenManager:
    """OAuth 認証情報のライフサイクル管理"""

    def __init__(
        self,
        config: Config,
        provider: ConnectionProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.provider = provider
        self._transport = transport
        self.logger = logger or setup_logger(__name__)
        self._refresh_lock = asyncio.Lock()

    # =========================================================================
    # Authorization URL
    # =========================================================================

    def build_authorization_url(self) -> str:
        """同意画面のURLを生成

        オフラインアクセス + 読み取り専用スコープ。
        refresh_token を確実に発行させるため常に再同意を要求する。
        """
        params = {
            "client_id": self.config.google_client_id,
            "redirect_uri": self.config.google_redirect_uri,
            "response_type": "code",
            "scope": SCOPE,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    # =========================================================================
    # Token endpoint
    # =========================================================================

    async def _post_token(self, data: dict[str, Any]) -> TokenResponse:
        """トークンエンドポイントを呼び出す

        Raises:
            AuthError: プロバイダが拒否
            TimedOutError: タイムアウト
            ExternalAPIError: 通信エラー
        """
        timeout = self.config.http_timeout_seconds
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.TimeoutException as e:
            raise TimedOutError(f"Token endpoint timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise ExternalAPIError(f"Token endpoint error: {e}") from e

        if not response.is_success:
            raise AuthError(f"OAuth error: {provider_error_message(response)}")

        try:
            return response.json()
        except ValueError as e:
            raise AuthError(f"OAuth error: invalid token response ({e})") from e

    @staticmethod
    def _credential_from_token(token: TokenResponse, fallback_refresh_token: str = "") -> Credential:
        access_token = token.get("access_token")
        if not access_token:
            raise AuthError("OAuth error: token response did not include access_token")

        expires_in = int(token.get("expires_in") or DEFAULT_EXPIRES_IN_SEC)
        return Credential(
            access_token=access_token,
            refresh_token=token.get("refresh_token") or fallback_refresh_token,
            expiry_date=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )

    # =========================================================================
    # Authorization code exchange
    # =========================================================================

    async def exchange_code(self, code: str) -> Credential:
        """認可コードをトークンに交換して保存

        保存に失敗した場合、取得したトークンは破棄される（呼び出し側は
        認可フローをやり直す）。

        Returns:
            保存された認証情報

        Raises:
            ValidationError: code が空
            AuthError: プロバイダがコードを拒否
            StorageError: 保存失敗
        """
        if not code:
            raise ValidationError("No authorization code provided")

        try:
            token = await self._post_token({
                "client_id": self.config.google_client_id,
                "client_secret": self.config.google_client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.config.google_redirect_uri,
            })
            credential = self._credential_from_token(token)

            if not credential.refresh_token:
                self.logger.warning("Token response did not include refresh_token; keeping the stored one")

            with self.provider.connection() as conn:
                upsert_credential(conn, credential)
                stored = fetch_credential(conn)
        except CalendarSyncError as e:
            log_failure(self.logger, "exchange_code", e)
            raise

        self.logger.info(f"Tokens saved (expires: {credential.expiry_date.isoformat()})")
        return stored or credential

    # =========================================================================
    # Valid credential (with refresh)
    # =========================================================================

    async def _load(self) -> Credential:
        with self.provider.connection() as conn:
            credential = fetch_credential(conn)
        if credential is None:
            raise NotFoundError("No OAuth tokens found")
        return credential

    async def load_valid_credential(self) -> Credential:
        """有効な認証情報を取得（期限切れなら更新・保存完了後に返す）

        Raises:
            NotFoundError: 認証情報が未保存
            AuthError: トークン更新をプロバイダが拒否
            StorageError: 読み取り・保存失敗
        """
        credential = await self._load()
        if not credential.is_expired():
            return credential

        async with self._refresh_lock:
            # 待機中に別の呼び出しが更新済みの可能性がある
            credential = await self._load()
            if not credential.is_expired():
                return credential
            return await self._refresh(credential)

    async def _refresh(self, credential: Credential) -> Credential:
        if not credential.refresh_token:
            raise AuthError("No refresh token stored. Restart the authorization flow.")

        self.logger.info("Access token expired, refreshing...")
        token = await self._post_token({
            "client_id": self.config.google_client_id,
            "client_secret": self.config.google_client_secret,
            "refresh_token": credential.refresh_token,
            "grant_type": "refresh_token",
        })
        refreshed = self._credential_from_token(token, fallback_refresh_token=credential.refresh_token)

        with self.provider.connection() as conn:
            updated = update_refreshed_credential(conn, refreshed, credential.expiry_date)
            if not updated:
                # 別プロセスが先に更新した
                self.logger.warning("Tokens changed during refresh; using the stored value")
                stored = fetch_credential(conn)
                if stored is None:
                    raise NotFoundError("No OAuth tokens found")
                return stored

        self.logger.info(f"Token refreshed (expires: {refreshed.expiry_date.isoformat()})")
        return refreshed
