#!/usr/bin/env python3
"""Google Calendar OAuth2 認証フロー初期化スクリプト

Web サーバーを起動せずに Authorization Code Flow を実行し、
取得したトークンを oauth_tokens に保存する。

必要な環境変数:
  - DIRECT_DATABASE_URL
  - GOOGLE_CLIENT_ID
  - GOOGLE_CLIENT_SECRET
  - GOOGLE_REDIRECT_URI（例: http://localhost:3000/calendar/oauth2callback）

使用方法:
  python scripts/init_calendar_oauth.py

Google Cloud Console設定:
  1. Google Calendar APIを有効化
  2. OAuth同意画面を設定
  3. OAuth 2.0クライアントIDを作成し、GOOGLE_REDIRECT_URI をリダイレクトURIに登録
"""

import asyncio
import sys
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.lib.config import load_config
from calendar_sync.lib.errors import CalendarSyncError
from calendar_sync.services.google_calendar.auth import TokenManager


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """OAuth2コールバックを受け取るHTTPハンドラー"""

    callback_path = "/"
    authorization_code = None
    error = None

    def do_GET(self):
        """GETリクエストを処理"""
        parsed = urlparse(self.path)

        if parsed.path != self.callback_path:
            self.send_response(404)
            self.end_headers()
            return

        query = parse_qs(parsed.query)
        if "code" in query:
            OAuthCallbackHandler.authorization_code = query["code"][0]
            self._respond(200, b"<h1>OK!</h1><p>Authorization successful. You can close this window.</p>")
        else:
            OAuthCallbackHandler.error = query.get("error", ["No code received"])[0]
            self._respond(400, f"<h1>Error</h1><p>{OAuthCallbackHandler.error}</p>".encode())

    def _respond(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.end_headers()
        self.wfile.write(b"<html><body>" + body + b"</body></html>")

    def log_message(self, format, *args):
        """ログ出力を抑制"""
        pass


def get_authorization_code(auth_url: str, redirect_uri: str) -> str:
    """ブラウザで認証画面を開き、認証コードを取得"""
    redirect = urlparse(redirect_uri)
    OAuthCallbackHandler.callback_path = redirect.path or "/"

    print("\n1. ブラウザで認証画面を開きます...")
    print(f"   URL: {auth_url}")
    webbrowser.open(auth_url)

    print("\n2. ブラウザでGoogleアカウントを選択し、アクセスを許可してください...")
    print(f"   コールバックを待機中: {redirect_uri}")

    server = HTTPServer((redirect.hostname or "localhost", redirect.port or 80), OAuthCallbackHandler)
    server.handle_request()
    server.server_close()

    if OAuthCallbackHandler.authorization_code:
        print("\n3. 認証コードを取得しました！")
        return OAuthCallbackHandler.authorization_code
    raise RuntimeError(f"認証コードを取得できませんでした: {OAuthCallbackHandler.error}")


def main() -> int:
    """メイン処理"""
    print("=== Google Calendar OAuth2 認証セットアップ ===\n")

    try:
        config = load_config()
    except ValueError as e:
        print(f"エラー: {e}")
        return 1

    provider = ConnectionProvider(config.database_url, 1, 1)
    manager = TokenManager(config, provider)

    print(f"Client ID: {config.google_client_id[:8]}...{config.google_client_id[-4:]}")
    print(f"Redirect URI: {config.google_redirect_uri}")

    try:
        code = get_authorization_code(manager.build_authorization_url(), config.google_redirect_uri)

        print("\n4. トークンを取得して保存中...")
        credential = asyncio.run(manager.exchange_code(code))

        if not credential.refresh_token:
            print("   警告: refresh_tokenがありません。期限切れ後は再認証が必要です。")
        print(f"   有効期限: {credential.expiry_date.isoformat()}")

        print("\n" + "=" * 50)
        print("Google Calendar OAuth2 認証が完了しました！")
        print("=" * 50)
        print("\n次のステップ:")
        print("  python scripts/run_sync.py --time-min 2024-01-01T00:00:00Z")
    except (CalendarSyncError, RuntimeError) as e:
        print(f"\nエラー: {e}")
        return 1
    finally:
        provider.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
