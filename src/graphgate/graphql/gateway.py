"""
GraphQL Gateway for GraphGate.

Owns the executable schema, the listener registry, the event producer and
both transports, and runs the ordered shutdown sequence.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from strawberry import Schema
from strawberry.fastapi import GraphQLRouter

from graphgate.core.config import Settings
from graphgate.core.logging import get_logger
from graphgate.streaming import EventProducer, ListenerRegistry
from graphgate.upstream.client import UpstreamClient
from .resolvers import Resolvers
from .schema import build_schema
from .websocket import SubscriptionServer

logger = get_logger(__name__)


class GatewayState(Enum):
    """Gateway lifecycle state."""
    CREATED = "created"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class GraphQLGateway:
    """
    Unified GraphQL gateway.

    Binds the schema to HTTP (strawberry's FastAPI router) and WebSocket
    (``SubscriptionServer``) on one application and coordinates shutdown:
    refuse new work, drain subscriptions, close sockets. Closing the network
    listener is left to the server that owns it.
    """

    def __init__(self, settings: Settings, upstream: Optional[UpstreamClient] = None):
        """Initialize gateway and build the executable schema."""
        self.settings = settings
        self.logger = get_logger(__name__)

        self.upstream = upstream or UpstreamClient(settings.upstream_base_url)
        self.registry = ListenerRegistry()
        self.resolvers = Resolvers(self.upstream, self.registry, settings.todos_page_size)
        self.producer = EventProducer(self.registry, settings.event_interval_seconds)
        self.subscriptions = SubscriptionServer(
            self,
            connection_init_timeout=settings.connection_init_timeout_seconds,
        )

        self.schema: Schema = build_schema(self.resolvers)
        self.state = GatewayState.CREATED
        self._shutdown_task: Optional[asyncio.Task] = None

    @property
    def accepting(self) -> bool:
        """Whether new operations are admitted."""
        return self.state in (GatewayState.CREATED, GatewayState.RUNNING)

    def context(self) -> Dict[str, Any]:
        """Execution context shared by HTTP and WebSocket operations."""
        context = self.resolvers.context()
        context["gateway"] = self
        return context

    async def http_context(self) -> Dict[str, Any]:
        """Context getter for the HTTP router; refuses work during shutdown."""
        if not self.accepting:
            raise HTTPException(status_code=503, detail="Server is shutting down")
        return self.context()

    def get_router(self) -> GraphQLRouter:
        """FastAPI router serving GraphQL over HTTP."""
        return GraphQLRouter(
            self.schema,
            path=self.settings.graphql_path,
            graphql_ide="graphiql" if self.settings.graphql_ide else None,
            context_getter=self.http_context,
        )

    def mount(self, app: FastAPI) -> None:
        """Attach both transports to ``app`` at the GraphQL path."""
        # Registered before the router so this handler wins WebSocket scopes
        app.add_api_websocket_route(self.settings.graphql_path, self.subscriptions.endpoint)
        app.include_router(self.get_router())

    async def startup(self) -> None:
        """Start background work."""
        if self.settings.enable_event_producer:
            self.producer.start()
        self.state = GatewayState.RUNNING
        self.logger.info("GraphQL gateway started", path=self.settings.graphql_path)

    async def shutdown(self) -> None:
        """Run the shutdown sequence once; concurrent callers wait for it."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> None:
        # 1. Refuse new work at the schema layer
        self.state = GatewayState.DRAINING
        self.logger.info("Shutdown started; refusing new operations")

        # 2. No new events or listeners; let queued deliveries finish
        await self.producer.stop()
        self.registry.close()
        drained = await self.subscriptions.drain(self.settings.shutdown_drain_timeout_seconds)
        self.logger.info("Subscriptions drained" if drained else "Subscription drain timed out")

        # 3. Close the persistent transport
        await self.subscriptions.close_all()

        self.state = GatewayState.STOPPED
        self.logger.info("GraphQL gateway stopped")

    async def close(self) -> None:
        """Shut down if needed and release the upstream client."""
        await self.shutdown()
        await self.upstream.close()

    def get_health_info(self) -> Dict[str, Any]:
        """Get GraphQL gateway health information."""
        return {
            "status": "healthy" if self.accepting else "shutting_down",
            "state": self.state.value,
            "shutting_down": not self.accepting,
            "endpoints": {
                "graphql": self.settings.graphql_path,
                "subscriptions": self.settings.graphql_path,
            },
            "subscriptions": self.subscriptions.get_stats(),
            "listeners": self.registry.get_stats(),
            "producer": self.producer.get_stats(),
        }
