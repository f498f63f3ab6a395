"""
GraphGate Application Entry Point.

Builds the FastAPI application that serves GraphQL over HTTP and WebSocket on
one listener, plus health endpoints.

Key Components:
- FastAPI application with CORS middleware
- GraphQL gateway (executable schema, subscriptions, synthetic event producer)
- Lifecycle management for startup and ordered shutdown
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from graphgate.api.routes import health_router
from graphgate.core.config import Settings, settings as default_settings
from graphgate.core.logging import get_logger
from graphgate.graphql.gateway import GraphQLGateway

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.

    Starts the gateway's background work on startup. On shutdown runs the
    gateway shutdown sequence (a no-op when a signal already ran it) and
    releases the upstream client.
    """
    gateway: GraphQLGateway = app.state.gateway

    logger.info("Starting GraphGate")
    await gateway.startup()
    logger.info("GraphGate started successfully")

    yield

    logger.info("Shutting down GraphGate")
    try:
        await gateway.close()
    except Exception as e:
        logger.error(f"Shutdown error: {e}")
    logger.info("GraphGate shut down complete")


def create_app(settings: Optional[Settings] = None, gateway: Optional[GraphQLGateway] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        settings: Configuration; the environment-loaded settings by default
        gateway: Pre-built gateway, e.g. one wired to a fake upstream in tests

    Returns:
        FastAPI: Configured application with the gateway on ``app.state``
    """
    settings = settings or default_settings
    gateway = gateway or GraphQLGateway(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Real-time GraphQL Gateway",
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    gateway.mount(app)

    return app
