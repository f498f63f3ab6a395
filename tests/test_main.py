"""Tests for the signal-driven server shutdown"""

import asyncio
import signal

import uvicorn

from graphgate.app import create_app
from graphgate.graphql.gateway import GatewayState
from graphgate.main import GatewayServer, build_server

from .conftest import FakeWebSocket, eventually, make_settings
from .test_websocket import open_connection, subscribe


def make_server(gateway) -> GatewayServer:
    app = create_app(gateway.settings, gateway)
    return GatewayServer(uvicorn.Config(app, log_config=None), gateway)


class TestGatewayServer:
    """Tests for GatewayServer"""

    async def test_signal_drains_before_listener_closes(self, gateway):
        server = make_server(gateway)
        server._loop = asyncio.get_running_loop()

        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        await subscribe(gateway, websocket)
        gateway.producer.tick()

        server.handle_exit(signal.SIGTERM, None)
        assert not server.should_exit

        await eventually(lambda: server.should_exit)
        await task

        assert gateway.state == GatewayState.STOPPED
        assert ("send", "next") in websocket.log
        assert websocket.log[-1][0] == "close"

    async def test_second_signal_falls_through(self, gateway):
        server = make_server(gateway)
        server._loop = asyncio.get_running_loop()

        server.handle_exit(signal.SIGINT, None)
        server.handle_exit(signal.SIGINT, None)

        assert server.should_exit
        await eventually(lambda: gateway.state == GatewayState.STOPPED)

    def test_build_server_uses_settings(self):
        server = build_server(make_settings(api_port=4321))

        assert server.config.port == 4321
        assert server.gateway.settings.api_port == 4321
