"""
Core configuration, logging and error types.
"""

from .config import Settings, get_settings, settings
from .errors import GatewayError, ProtocolError, ShutdownInProgressError, UpstreamError
from .logging import LogContext, get_logger

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "GatewayError",
    "ProtocolError",
    "ShutdownInProgressError",
    "UpstreamError",
    "LogContext",
    "get_logger",
]
