"""
セッション管理

保存済みの設定から NozbeClient を組み立て、API キーのキャッシュと
ログイン・ログアウトを扱う
"""

import logging
from typing import Optional

from ..data.nozbe_client import NozbeClient
from ..utils.error_handler import AuthenticationError, ErrorContext
from .config_manager import ConfigManager
from .config_schema import AppConfig


class SessionManager:
    """
    セッション管理クラス

    API キーは ConfigManager によって暗号化保存され、次回以降の実行で
    ログインせずに再利用される
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        SessionManager を初期化

        Args:
            config_manager: 使用する ConfigManager インスタンス。
                          None の場合は新しいインスタンスを作成
        """
        self.config_manager = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)
        self._app_config: Optional[AppConfig] = None

    @property
    def app_config(self) -> AppConfig:
        if self._app_config is None:
            self._app_config = self.config_manager.load_app_config()
        return self._app_config

    def is_logged_in(self) -> bool:
        """キャッシュ済みの API キーがあるか"""
        return bool(self.app_config.nozbe.api_key)

    def create_client(self, require_api_key: bool = True) -> NozbeClient:
        """
        設定から NozbeClient を作成し、キャッシュ済みの API キーを注入

        Args:
            require_api_key: True の場合、API キーが無ければ AuthenticationError

        Returns:
            NozbeClient インスタンス

        Raises:
            AuthenticationError: API キーが必要だがキャッシュされていない場合
        """
        client = NozbeClient(self.app_config.nozbe.client_options())

        api_key = self.app_config.nozbe.api_key
        if api_key:
            client.set_api_key(api_key)
        elif require_api_key:
            raise AuthenticationError("ログインしていません。先に `nozbe login` を実行してください")

        return client

    def login(self, email: str, password: str) -> NozbeClient:
        """
        ログインして API キーを保存

        Args:
            email: Nozbe アカウントのメールアドレス
            password: Nozbe アカウントのパスワード

        Returns:
            API キーを設定済みの NozbeClient

        Raises:
            AuthenticationError: サーバーが API キーを返さなかった場合
        """
        with ErrorContext("ログイン処理", reraise=True):
            client = self.create_client(require_api_key=False)

            api_key = client.fetch_api_key(email, password)
            if api_key is None:
                raise AuthenticationError("ログインに失敗しました: API キーを取得できませんでした")

            client.set_api_key(api_key)

            self._save_credentials(email=email, api_key=api_key)

            self.logger.info(f"ログインしました: {email}")
            return client

    def logout(self) -> None:
        """キャッシュ済みの API キーを削除"""
        if not self.app_config.nozbe.api_key:
            self.logger.info("API キーはキャッシュされていません")
            return

        self._save_credentials(api_key="")
        self.logger.info("API キーを削除しました")

    def _save_credentials(self, api_key: str, email: Optional[str] = None) -> None:
        """
        認証情報を保存

        環境変数で上書きされた値を書き戻さないよう、保存済みの設定を読み直して更新する
        """
        stored = self.config_manager.load_app_config(apply_env=False)
        if email is not None:
            stored.nozbe.email = email
            self.app_config.nozbe.email = email
        stored.nozbe.api_key = api_key
        self.config_manager.save_app_config(stored)

        self.app_config.nozbe.api_key = api_key
