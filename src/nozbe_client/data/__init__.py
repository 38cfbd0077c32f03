"""
データレイヤーモジュール

Nozbe API との通信を提供
"""

from .nozbe_client import NozbeClient, ACTION_FILTERS, is_truthy, loose_equals, parse_gmt_timestamp

__all__ = [
    'NozbeClient',
    'ACTION_FILTERS',
    'is_truthy',
    'loose_equals',
    'parse_gmt_timestamp'
]
