"""
Nozbe API クライアント

使用例:
    from nozbe_client import NozbeClient

    client = NozbeClient({'http_timeout': 5})
    if client.login('user@example.com', 'secret'):
        print(client.get_next_action_names())
"""

from .data.nozbe_client import NozbeClient
from .utils.error_handler import (
    NozbeClientError, TransportError, ProtocolError, AuthenticationError, ConfigurationError
)

__version__ = "1.0.0"

__all__ = [
    'NozbeClient',
    'NozbeClientError',
    'TransportError',
    'ProtocolError',
    'AuthenticationError',
    'ConfigurationError'
]
