"""
Health check API endpoints.

Endpoints:
- GET /: Root endpoint with basic service info
- GET /health: Gateway state, subscription and producer statistics
"""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/")
async def root(request: Request):
    """
    Root endpoint providing basic service information.

    Example Response:
        {
            "name": "GraphGate",
            "version": "0.1.0",
            "status": "operational",
            "graphql": "/graphql"
        }
    """
    settings = request.app.state.gateway.settings
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
        "graphql": settings.graphql_path,
    }


@router.get("/health")
async def health_check(request: Request):
    """
    Health of the gateway and its transports.

    Reports ``shutting_down`` once the shutdown sequence has begun, along with
    active connections, listeners and producer tick counts.
    """
    gateway = request.app.state.gateway
    info = gateway.get_health_info()
    info["version"] = gateway.settings.app_version
    info["environment"] = gateway.settings.environment
    return info
