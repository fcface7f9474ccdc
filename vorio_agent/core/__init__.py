"""Core package"""

from .errors import (
    VorioAgentError,
    ConfigurationError,
    ControllerError,
    AuthenticationError,
    ConnectionError,
    VorioApiError,
    SyncError,
    NetworkErrorCode,
    get_error_message,
)

__all__ = [
    'VorioAgentError', 'ConfigurationError', 'ControllerError', 'AuthenticationError',
    'ConnectionError', 'VorioApiError', 'SyncError', 'NetworkErrorCode', 'get_error_message',
]
