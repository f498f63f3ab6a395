"""
Upstream REST provider access.
"""

from .client import UpstreamClient
from .models import TodoRecord, UpstreamResult, UserRecord

__all__ = ["UpstreamClient", "TodoRecord", "UpstreamResult", "UserRecord"]
