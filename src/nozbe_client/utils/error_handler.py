"""
エラーハンドリング基盤

Nozbe API クライアントの例外階層と、CLI 向けのユーザーフレンドリーな
エラーメッセージ生成・ログ記録を提供する
"""
import logging
import traceback
from typing import Optional, Dict, Any, List, Callable
from enum import Enum

from .logger import mask_credentials


class ErrorType(Enum):
    """エラータイプ分類"""
    TRANSPORT_ERROR = "transport_error"
    PROTOCOL_ERROR = "protocol_error"
    AUTHENTICATION_ERROR = "auth_error"
    CONFIGURATION_ERROR = "config_error"
    UNKNOWN_ERROR = "unknown_error"


class NozbeClientError(Exception):
    """アプリケーション基底例外クラス"""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.UNKNOWN_ERROR,
                 details: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        """
        エラーを初期化

        Args:
            message: エラーメッセージ
            error_type: エラータイプ
            details: エラー詳細情報
            original_error: 元の例外
        """
        super().__init__(message)
        self.error_type = error_type
        self.details = details or {}
        self.original_error = original_error


class TransportError(NozbeClientError):
    """HTTP リクエストが完了しなかった（接続失敗、タイムアウト、非 2xx 応答）"""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None,
                 original_error: Optional[Exception] = None):
        # 生の URL は .url のみに保持し、details には伏せ字を入れる
        details = {
            'url': mask_credentials(url),
            'status_code': status_code
        }
        super().__init__(message, ErrorType.TRANSPORT_ERROR, details, original_error)
        self.url = url
        self.status_code = status_code


class ProtocolError(NozbeClientError):
    """レスポンスボディが JSON として解釈できない"""

    def __init__(self, message: str, body: Any = None, original_error: Optional[Exception] = None):
        details = {'body': body}
        super().__init__(message, ErrorType.PROTOCOL_ERROR, details, original_error)
        self.body = body


class AuthenticationError(NozbeClientError):
    """認証関連エラー"""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, ErrorType.AUTHENTICATION_ERROR, original_error=original_error)


class ConfigurationError(NozbeClientError):
    """設定関連エラー"""

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {'config_key': config_key}
        super().__init__(message, ErrorType.CONFIGURATION_ERROR, details)


class ErrorHandler:
    """エラーハンドリング管理クラス"""

    def __init__(self):
        self.logger = logging.getLogger('nozbe_client.error_handler')

        # ユーザーフレンドリーなエラーメッセージマッピング
        self.user_messages = {
            ErrorType.TRANSPORT_ERROR: "Nozbe API との通信でエラーが発生しました。ネットワーク接続を確認してください。",
            ErrorType.PROTOCOL_ERROR: "Nozbe API から不正なレスポンスを受信しました。",
            ErrorType.AUTHENTICATION_ERROR: "認証に失敗しました。メールアドレスとパスワードを確認してください。",
            ErrorType.CONFIGURATION_ERROR: "設定に問題があります。",
            ErrorType.UNKNOWN_ERROR: "予期しないエラーが発生しました。"
        }

    def handle_error(self, error: Exception, context: str = "") -> str:
        """
        エラーを処理してユーザーフレンドリーなメッセージを返す

        Args:
            error: 発生したエラー
            context: エラーが発生したコンテキスト

        Returns:
            ユーザー向けエラーメッセージ
        """
        self.log_error(error, context)

        if isinstance(error, NozbeClientError):
            message = self._handle_application_error(error)
        else:
            message = self._handle_unknown_error(error)
        return mask_credentials(message)

    def _handle_application_error(self, error: NozbeClientError) -> str:
        """アプリケーション定義エラーを処理"""
        base_message = self.user_messages.get(error.error_type, self.user_messages[ErrorType.UNKNOWN_ERROR])

        if error.error_type == ErrorType.TRANSPORT_ERROR and error.details.get('status_code'):
            return f"{base_message} (HTTP ステータス: {error.details['status_code']})"

        if error.error_type == ErrorType.CONFIGURATION_ERROR and error.details.get('config_key'):
            return f"{base_message} 設定項目 '{error.details['config_key']}' を確認してください。"

        return f"{base_message} {str(error)}"

    def _handle_unknown_error(self, error: Exception) -> str:
        """未知のエラーを処理"""
        return f"{self.user_messages[ErrorType.UNKNOWN_ERROR]} 詳細: {str(error)}"

    def log_error(self, error: Exception, context: str = ""):
        """
        エラーをログに記録

        Args:
            error: 発生したエラー
            context: エラーが発生したコンテキスト
        """
        error_info = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'context': context,
            'traceback': traceback.format_exc()
        }

        if isinstance(error, NozbeClientError):
            error_info.update({
                'application_error_type': error.error_type.value,
                'error_details': error.details
            })

        self.logger.error(mask_credentials(f"エラーが発生しました: {error_info}"))

    def get_error_suggestions(self, error: Exception) -> List[str]:
        """エラーに対する解決策の提案を取得"""
        if not isinstance(error, NozbeClientError):
            return []

        if error.error_type == ErrorType.AUTHENTICATION_ERROR:
            return [
                "`nozbe login` で再ログインしてください",
                "API キーが失効していないか確認してください"
            ]
        if error.error_type == ErrorType.TRANSPORT_ERROR:
            return [
                "インターネット接続を確認してください",
                "base_url の設定が正しいか確認してください"
            ]
        if error.error_type == ErrorType.PROTOCOL_ERROR:
            return ["しばらく時間をおいてから再度実行してください"]
        if error.error_type == ErrorType.CONFIGURATION_ERROR:
            return ["設定ファイルを削除して再ログインしてください"]
        return []


# グローバルエラーハンドラーインスタンス
_error_handler = ErrorHandler()


def handle_error(error: Exception, context: str = "") -> str:
    """
    グローバルエラーハンドラーを使用してエラーを処理

    Args:
        error: 発生したエラー
        context: エラーコンテキスト

    Returns:
        ユーザー向けエラーメッセージ
    """
    return _error_handler.handle_error(error, context)


def get_error_suggestions(error: Exception) -> List[str]:
    """グローバルエラーハンドラーから解決策の提案を取得"""
    return _error_handler.get_error_suggestions(error)


# エラーハンドリングコンテキストマネージャ
class ErrorContext:
    """エラーハンドリングコンテキストマネージャ"""

    def __init__(self, context: str, reraise: bool = True,
                 on_error: Optional[Callable[[Exception], None]] = None):
        """
        エラーコンテキストを初期化

        Args:
            context: エラーコンテキスト
            reraise: エラーを再発生させるかどうか
            on_error: エラー発生時のコールバック関数
        """
        self.context = context
        self.reraise = reraise
        self.on_error = on_error
        self.error: Optional[Exception] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is not None:
            self.error = exc_val
            _error_handler.log_error(exc_val, self.context)

            if self.on_error:
                try:
                    self.on_error(exc_val)
                except Exception as callback_error:
                    _error_handler.log_error(callback_error, f"{self.context} - error callback")

            if not self.reraise:
                return True  # エラーを抑制

        return False
