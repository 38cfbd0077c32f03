"""
ログ設定とログ管理機能

ライブラリ本体はハンドラーを設定せず、CLI からのみ initialize_logging を呼び出す
"""
import logging
import logging.handlers
import json
import re
from pathlib import Path
from datetime import datetime
from typing import Optional, Dict


# URL 中の認証情報セグメント（API キー、パスワード）
_CREDENTIAL_SEGMENT = re.compile(r'(?<=/)(key|password)-[^/]*(/|$)')


def mask_credentials(text: str) -> str:
    """URL やメッセージに含まれる API キーとパスワードをログ出力用に伏せ字にする"""
    return _CREDENTIAL_SEGMENT.sub(lambda m: f"{m.group(1)}-****{m.group(2)}", str(text))


class LoggerConfig:
    """ログ設定管理クラス"""

    def __init__(self, log_dir: Optional[str] = None, debug_mode: bool = False):
        """
        ログ設定を初期化

        Args:
            log_dir: ログファイル保存ディレクトリ（Noneの場合はデフォルト使用）
            debug_mode: デバッグモードの有効/無効
        """
        if log_dir is None:
            self.log_dir = Path.home() / '.nozbe_client' / 'logs'
        else:
            self.log_dir = Path(log_dir)

        self.log_dir.mkdir(parents=True, exist_ok=True)

        date_str = datetime.now().strftime('%Y%m%d')
        self.log_file = self.log_dir / f"nozbe_client_{date_str}.log"
        self.debug_log_file = self.log_dir / f"nozbe_client_debug_{date_str}.log"
        self.error_log_file = self.log_dir / f"nozbe_client_error_{date_str}.log"

        self.debug_mode = debug_mode

        self.config_file = self.log_dir / "logging_config.json"

        self.default_config = {
            "log_level": "INFO",
            "debug_mode": debug_mode,
            "max_file_size_mb": 10,
            "backup_count": 5,
            "console_log_level": "WARNING",
            "log_format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
            "date_format": "%Y-%m-%d %H:%M:%S"
        }

    def load_config(self) -> dict:
        """ログ設定を読み込み"""
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    config = json.load(f)
                merged_config = self.default_config.copy()
                merged_config.update(config)
                return merged_config
            except (OSError, ValueError) as e:
                logging.getLogger(__name__).warning(f"ログ設定ファイルの読み込みに失敗: {e}")
                return self.default_config
        return self.default_config

    def setup_logging(self, level: Optional[str] = None, config: Optional[dict] = None) -> logging.Logger:
        """
        ログ設定をセットアップ

        Args:
            level: ログレベル（DEBUG, INFO, WARNING, ERROR, CRITICAL）
            config: ログ設定辞書

        Returns:
            設定済みのロガーインスタンス
        """
        if config is None:
            config = self.load_config()

        if level is None:
            level = config.get('log_level', 'INFO')

        log_level = getattr(logging, level.upper(), logging.INFO)
        console_level = getattr(logging, config.get('console_log_level', 'WARNING').upper(), logging.WARNING)
        if log_level <= logging.DEBUG:
            console_level = logging.DEBUG

        # アプリケーション専用ロガー（ハンドラーでフィルタリング）
        logger = logging.getLogger('nozbe_client')
        logger.setLevel(logging.DEBUG)

        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

        detailed_formatter = logging.Formatter(
            config.get('log_format', self.default_config['log_format']),
            datefmt=config.get('date_format', self.default_config['date_format'])
        )

        simple_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )

        # メインログファイルハンドラー（日次ローテーション）
        main_file_handler = logging.handlers.TimedRotatingFileHandler(
            filename=self.log_file,
            when='midnight',
            interval=1,
            backupCount=config.get('backup_count', 5),
            encoding='utf-8'
        )
        main_file_handler.setLevel(log_level)
        main_file_handler.setFormatter(detailed_formatter)
        logger.addHandler(main_file_handler)

        if config.get('debug_mode', False) or log_level <= logging.DEBUG:
            debug_file_handler = logging.handlers.RotatingFileHandler(
                filename=self.debug_log_file,
                maxBytes=config.get('max_file_size_mb', 10) * 1024 * 1024,
                backupCount=config.get('backup_count', 5),
                encoding='utf-8'
            )
            debug_file_handler.setLevel(logging.DEBUG)
            debug_file_handler.setFormatter(detailed_formatter)
            logger.addHandler(debug_file_handler)

        error_file_handler = logging.handlers.RotatingFileHandler(
            filename=self.error_log_file,
            maxBytes=config.get('max_file_size_mb', 10) * 1024 * 1024,
            backupCount=config.get('backup_count', 5),
            encoding='utf-8'
        )
        error_file_handler.setLevel(logging.ERROR)
        error_file_handler.setFormatter(detailed_formatter)
        logger.addHandler(error_file_handler)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        console_handler.setFormatter(simple_formatter)
        logger.addHandler(console_handler)

        # requests / urllib3 のログは WARNING 以上のみ
        logging.getLogger('urllib3').setLevel(logging.WARNING)

        logger.info("ログシステムが初期化されました")
        logger.info(f"ログレベル: {level}")
        logger.debug(f"メインログファイル: {self.log_file}")

        return logger

    def get_log_files(self) -> Dict[str, str]:
        """ログファイルのパス一覧を取得"""
        return {
            'main': str(self.log_file),
            'debug': str(self.debug_log_file),
            'error': str(self.error_log_file),
            'config': str(self.config_file)
        }


def get_logger(name: str = 'nozbe_client') -> logging.Logger:
    """
    ロガーインスタンスを取得

    Args:
        name: ロガー名

    Returns:
        ロガーインスタンス
    """
    return logging.getLogger(name)


# グローバルログ設定インスタンス
_logger_config = None


def initialize_logging(log_dir: Optional[str] = None, level: str = "INFO",
                       debug_mode: bool = False) -> logging.Logger:
    """
    アプリケーション全体のログ設定を初期化

    Args:
        log_dir: ログディレクトリ
        level: ログレベル
        debug_mode: デバッグモードの有効/無効

    Returns:
        メインロガー
    """
    global _logger_config
    _logger_config = LoggerConfig(log_dir, debug_mode)
    return _logger_config.setup_logging(level)


def get_log_files() -> Dict[str, str]:
    """ログファイルのパス一覧を取得"""
    if _logger_config:
        return _logger_config.get_log_files()
    return {}


class PerformanceLogger:
    """パフォーマンス測定用クラス"""

    def __init__(self, operation_name: str, logger_name: str = 'nozbe_client.performance'):
        self.operation_name = operation_name
        self.logger = logging.getLogger(logger_name)
        self.start_time = None
        self.end_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.debug(f"開始: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = datetime.now()
        duration = (self.end_time - self.start_time).total_seconds()

        if exc_type is None:
            self.logger.debug(f"完了: {self.operation_name} - 実行時間: {duration:.3f}秒")
        else:
            self.logger.warning(f"エラー終了: {self.operation_name} - 実行時間: {duration:.3f}秒 - "
                                f"エラー: {mask_credentials(exc_val)}")

    @property
    def duration(self) -> float:
        """計測済みの実行時間（秒）"""
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()


def log_api_request(method: str, url: str, status_code: int, duration: float,
                    response_size: int = 0):
    """API リクエスト情報をログに記録"""
    logger = get_logger('nozbe_client.api')
    logger.info(f"API: {method} {mask_credentials(url)} - {status_code} - {duration:.3f}s - "
                f"Res:{response_size}B")
