"""
設定管理システム - ConfigManager クラス

Nozbe クライアントの設定情報を保存・読み込みする機能を提供します。
API キーは暗号化して保存し、次回の実行で再利用できるようにします。
"""

import json
import os
import copy
from pathlib import Path
from typing import Dict, Any, Optional
from cryptography.fernet import Fernet, InvalidToken
import base64
import logging

from .config_schema import AppConfig
from ..utils.error_handler import ConfigurationError

logger = logging.getLogger(__name__)

# 環境変数による上書き
ENV_OVERRIDES = {
    'NOZBE_BASE_URL': ('nozbe', 'base_url', str),
    'NOZBE_HTTP_TIMEOUT': ('nozbe', 'http_timeout', float),
    'NOZBE_API_KEY': ('nozbe', 'api_key', str),
}


class ConfigManager:
    """設定管理クラス

    設定情報の暗号化保存・読み込み、デフォルト設定の管理、
    設定値のバリデーション機能を提供します。
    """

    def __init__(self, config_dir: Optional[str] = None):
        """ConfigManager を初期化

        Args:
            config_dir: 設定ファイルを保存するディレクトリ。
                       None の場合はユーザーのホームディレクトリ下に作成
        """
        if config_dir is None:
            self.config_dir = Path.home() / ".nozbe_client"
        else:
            self.config_dir = Path(config_dir)

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file = self.config_dir / "config.json"
        self.key_file = self.config_dir / "key.key"

        self._encryption_key = self._get_or_create_key()
        self._fernet = Fernet(self._encryption_key)

        logger.debug(f"ConfigManager initialized with config directory: {self.config_dir}")

    def _get_or_create_key(self) -> bytes:
        """暗号化キーを取得または作成

        Returns:
            暗号化キー
        """
        if self.key_file.exists():
            with open(self.key_file, 'rb') as f:
                return f.read()

        key = Fernet.generate_key()
        with open(self.key_file, 'wb') as f:
            f.write(key)
        try:
            os.chmod(self.key_file, 0o600)
        except OSError:
            logger.warning("Could not set restrictive permissions on key file")
        return key

    def encrypt_sensitive_data(self, data: str) -> str:
        """機密データを暗号化

        Args:
            data: 暗号化する文字列

        Returns:
            暗号化された文字列（base64エンコード済み）
        """
        if not data:
            return ""

        encrypted_data = self._fernet.encrypt(data.encode('utf-8'))
        return base64.b64encode(encrypted_data).decode('utf-8')

    def decrypt_sensitive_data(self, encrypted_data: str) -> str:
        """暗号化されたデータを復号化

        Args:
            encrypted_data: 暗号化された文字列（base64エンコード済み）

        Returns:
            復号化された文字列

        Raises:
            ConfigurationError: 復号化に失敗した場合
        """
        if not encrypted_data:
            return ""

        try:
            decoded_data = base64.b64decode(encrypted_data.encode('utf-8'))
            decrypted_data = self._fernet.decrypt(decoded_data)
            return decrypted_data.decode('utf-8')
        except (InvalidToken, ValueError) as e:
            logger.error(f"Failed to decrypt data: {e}")
            raise ConfigurationError("API キーの復号化に失敗しました", config_key="nozbe.api_key")

    def get_default_config(self) -> Dict[str, Any]:
        """デフォルト設定を取得

        Returns:
            デフォルト設定辞書
        """
        return AppConfig().to_dict()

    def validate_config(self, config: Dict[str, Any]) -> bool:
        """設定の妥当性を検証

        Args:
            config: 検証する設定辞書

        Returns:
            設定が有効な場合 True

        Raises:
            ConfigurationError: 設定が無効な場合
        """
        for section in ("nozbe", "output"):
            if not isinstance(config.get(section), dict):
                raise ConfigurationError(f"必須セクション '{section}' が見つかりません", config_key=section)

        nozbe_config = config["nozbe"]
        for key in ("base_url", "email", "api_key"):
            if not isinstance(nozbe_config.get(key, ""), str):
                raise ConfigurationError(f"{key} は文字列である必要があります", config_key=f"nozbe.{key}")

        base_url = nozbe_config.get("base_url", "")
        if not base_url.startswith(("http://", "https://")):
            raise ConfigurationError("base_url は http:// または https:// で始まる必要があります",
                                     config_key="nozbe.base_url")

        timeout = nozbe_config.get("http_timeout")
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationError("http_timeout は正の数である必要があります", config_key="nozbe.http_timeout")

        output_config = config["output"]
        if not isinstance(output_config.get("show_done", False), bool):
            raise ConfigurationError("show_done は真偽値である必要があります", config_key="output.show_done")

        return True

    def apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """環境変数の値で設定を上書き

        Args:
            config: 設定辞書

        Returns:
            上書き後の設定辞書（新しいオブジェクト）
        """
        overridden = copy.deepcopy(config)
        for env_name, (section, key, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                overridden.setdefault(section, {})[key] = cast(raw.strip())
            except ValueError:
                raise ConfigurationError(f"環境変数 {env_name} の値が無効です: {raw}", config_key=env_name)
            logger.debug(f"Config value {section}.{key} overridden by {env_name}")
        return overridden

    def load_config(self, apply_env: bool = True) -> Dict[str, Any]:
        """設定ファイルから設定を読み込み

        Args:
            apply_env: False の場合は環境変数による上書きを行わず、保存内容をそのまま返す

        Returns:
            設定辞書。ファイルが存在しない場合はデフォルト設定を返す

        Raises:
            ConfigurationError: 設定ファイルの形式が無効な場合
        """
        if not self.config_file.exists():
            logger.info("Config file not found, returning default config")
            config = self.get_default_config()
            return self.apply_env_overrides(config) if apply_env else config

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                stored = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file: {e}")
            raise ConfigurationError("設定ファイルの形式が無効です")

        # 欠けているキーはデフォルトで補完
        config = AppConfig.from_dict(stored).to_dict()

        if config["nozbe"].get("api_key"):
            config["nozbe"]["api_key"] = self.decrypt_sensitive_data(config["nozbe"]["api_key"])

        self.validate_config(config)

        logger.info("Config loaded successfully")
        return self.apply_env_overrides(config) if apply_env else config

    def load_app_config(self, apply_env: bool = True) -> AppConfig:
        """設定を AppConfig として読み込み"""
        return AppConfig.from_dict(self.load_config(apply_env=apply_env))

    def save_config(self, config: Dict[str, Any]) -> None:
        """設定を暗号化してファイルに保存

        Args:
            config: 保存する設定辞書

        Raises:
            ConfigurationError: 設定が無効な場合
            IOError: ファイル保存に失敗した場合
        """
        self.validate_config(config)

        # 保存用の設定を深いコピー（元の設定を変更しないため）
        config_to_save = copy.deepcopy(config)

        if config_to_save.get("nozbe", {}).get("api_key"):
            config_to_save["nozbe"]["api_key"] = self.encrypt_sensitive_data(
                config_to_save["nozbe"]["api_key"]
            )

        # 一時ファイルに書き込んでから移動（原子的操作）
        temp_file = self.config_file.with_suffix('.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(config_to_save, f, indent=2, ensure_ascii=False)

            temp_file.replace(self.config_file)

            logger.info("Config saved successfully")

        except OSError as e:
            logger.error(f"Failed to save config: {e}")
            if temp_file.exists():
                temp_file.unlink()
            raise IOError(f"設定ファイルの保存に失敗しました: {e}")

    def save_app_config(self, app_config: AppConfig) -> None:
        """AppConfig を保存"""
        self.save_config(app_config.to_dict())

    def reset_config(self) -> None:
        """設定をデフォルトにリセット

        設定ファイルと暗号化キーを削除し、新しい暗号化キーを生成します。
        """
        try:
            if self.config_file.exists():
                self.config_file.unlink()
                logger.info("Config file deleted")

            if self.key_file.exists():
                self.key_file.unlink()
                logger.info("Key file deleted")

            self._encryption_key = self._get_or_create_key()
            self._fernet = Fernet(self._encryption_key)

            logger.info("Config reset completed")

        except OSError as e:
            logger.error(f"Failed to reset config: {e}")
            raise IOError(f"設定のリセットに失敗しました: {e}")

    def get_config_path(self) -> str:
        """設定ファイルのパスを取得

        Returns:
            設定ファイルの絶対パス
        """
        return str(self.config_file.absolute())

    def config_exists(self) -> bool:
        """設定ファイルが存在するかチェック

        Returns:
            設定ファイルが存在する場合 True
        """
        return self.config_file.exists()
