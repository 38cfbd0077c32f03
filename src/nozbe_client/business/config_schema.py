"""
設定ファイル構造定義

Nozbe クライアントの設定ファイルの構造とスキーマを定義します。
"""

from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict, field

from ..data.nozbe_client import NozbeClient


@dataclass
class NozbeConfig:
    """Nozbe API 関連の設定"""
    base_url: str = NozbeClient.DEFAULT_OPTIONS['base_url']
    http_timeout: float = NozbeClient.DEFAULT_OPTIONS['http_timeout']
    email: str = ""
    api_key: str = ""

    def client_options(self) -> Dict[str, Any]:
        """NozbeClient に渡すオプション辞書を作成"""
        return {
            'base_url': self.base_url,
            'http_timeout': self.http_timeout,
        }


@dataclass
class OutputConfig:
    """CLI 出力関連の設定"""
    show_done: bool = False
    indent: int = 2


@dataclass
class AppConfig:
    """アプリケーション全体の設定"""
    nozbe: NozbeConfig = field(default_factory=NozbeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def to_dict(self) -> Dict[str, Any]:
        """設定を辞書形式に変換"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AppConfig':
        """辞書から設定オブジェクトを作成（未知のキーは無視）"""
        data = data or {}
        nozbe_data = data.get('nozbe', {})
        output_data = data.get('output', {})

        return cls(
            nozbe=NozbeConfig(**{k: v for k, v in nozbe_data.items()
                                 if k in NozbeConfig.__dataclass_fields__}),
            output=OutputConfig(**{k: v for k, v in output_data.items()
                                   if k in OutputConfig.__dataclass_fields__})
        )
