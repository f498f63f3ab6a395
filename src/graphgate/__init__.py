"""
GraphGate - Real-time GraphQL Gateway

A single typed query/subscription interface over REST upstream providers,
served over HTTP and WebSocket from one listener.
"""

__version__ = "0.1.0"
__author__ = "GraphGate Team"

from graphgate.core.config import settings
from graphgate.core.logging import get_logger

logger = get_logger(__name__)

__all__ = ["settings", "logger", "__version__"]
