# ビジネスロジックレイヤー - 設定管理、セッション管理

from .config_manager import ConfigManager
from .config_schema import AppConfig, NozbeConfig, OutputConfig
from .session_manager import SessionManager

__all__ = [
    'ConfigManager',
    'AppConfig', 'NozbeConfig', 'OutputConfig',
    'SessionManager'
]
