"""
Error taxonomy for the GraphGate gateway.

Upstream failures are carried as values inside an ``UpstreamResult`` and never
raised to clients. The remaining errors are raised at the transport boundary.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for gateway errors."""


class UpstreamError(GatewayError):
    """A call to the upstream provider failed (network, HTTP status or payload)."""

    def __init__(self, message: str, resource: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.resource = resource
        self.status_code = status_code


class ShutdownInProgressError(GatewayError):
    """New work arrived after the shutdown sequence started."""


class ProtocolError(GatewayError):
    """A WebSocket client violated the subscription protocol."""

    def __init__(self, message: str, close_code: int):
        super().__init__(message)
        self.close_code = close_code
