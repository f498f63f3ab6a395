"""
Process entry point for GraphGate.

Runs the application on one uvicorn listener and intercepts SIGINT/SIGTERM so
the gateway drains subscriptions and closes its WebSockets before uvicorn
closes the listening socket.
"""

import asyncio
import sys
from typing import Optional

import uvicorn

from graphgate.app import create_app
from graphgate.core.config import Settings, settings as default_settings
from graphgate.core.logging import get_logger
from graphgate.graphql.gateway import GraphQLGateway

logger = get_logger(__name__)


class GatewayServer(uvicorn.Server):
    """
    uvicorn server whose exit signal first runs the gateway shutdown.

    Order: refuse new work, drain subscriptions, close WebSockets (all in
    ``GraphQLGateway.shutdown``), then close the network listener. A second
    signal falls through to uvicorn's immediate exit.
    """

    def __init__(self, config: uvicorn.Config, gateway: GraphQLGateway):
        super().__init__(config)
        self.gateway = gateway
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_requested = False

    async def serve(self, sockets=None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig, frame) -> None:
        if self._shutdown_requested or self._loop is None:
            super().handle_exit(sig, frame)
            return
        self._shutdown_requested = True
        logger.info("Termination signal received", signal=int(sig))
        self._loop.call_soon_threadsafe(self._begin_shutdown)

    def _begin_shutdown(self) -> None:
        task = asyncio.ensure_future(self.shutdown_gateway())
        task.add_done_callback(self._log_shutdown_failure)

    async def shutdown_gateway(self) -> None:
        """Run the gateway shutdown, then let uvicorn close the listener."""
        try:
            await self.gateway.shutdown()
        finally:
            self.should_exit = True

    @staticmethod
    def _log_shutdown_failure(task: asyncio.Future) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Gateway shutdown failed: {task.exception()}")


def build_server(settings: Optional[Settings] = None) -> GatewayServer:
    """Create the application and the server that will run it."""
    settings = settings or default_settings
    gateway = GraphQLGateway(settings)
    app = create_app(settings, gateway)
    config = uvicorn.Config(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
        lifespan="on",
    )
    return GatewayServer(config, gateway)


def main() -> None:
    """Serve until a termination signal completes the shutdown sequence."""
    server = build_server()
    logger.info(
        f"GraphGate ready at http://{server.config.host}:{server.config.port}"
        f"{default_settings.graphql_path}"
    )
    server.run()
    if not server.started:
        # Could not bind the listener
        sys.exit(1)


if __name__ == "__main__":
    main()
