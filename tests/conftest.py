"""
Pytest configuration and shared fixtures.

The upstream provider is replaced by the mock provider app (through
``httpx.ASGITransport``) or by ``httpx.MockTransport`` handlers, so no test
touches the network.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from graphgate.core.config import Settings
from graphgate.graphql.gateway import GraphQLGateway
from graphgate.upstream import mock_provider
from graphgate.upstream.client import UpstreamClient

UPSTREAM_URL = "http://upstream.test"


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests: no background producer unless asked for."""
    values: Dict[str, Any] = {
        "environment": "testing",
        "enable_event_producer": False,
        "upstream_base_url": UPSTREAM_URL,
        "shutdown_drain_timeout_seconds": 1.0,
    }
    values.update(overrides)
    return Settings(**values)


class RecordingTransport(httpx.AsyncBaseTransport):
    """Forwards to another transport and records every request path."""

    def __init__(self, inner: httpx.AsyncBaseTransport):
        self.inner = inner
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.inner.handle_async_request(request)

    @property
    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


def unreachable_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until ``predicate`` holds; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


class FakeWebSocket:
    """In-memory stand-in for a Starlette WebSocket, driven from the test."""

    def __init__(self, subprotocols=("graphql-transport-ws",)):
        self.scope = {"type": "websocket", "subprotocols": list(subprotocols)}
        self.accepted_subprotocol: Optional[str] = None
        self.close_code: Optional[int] = None
        self.sent: List[Dict[str, Any]] = []
        self.fail_sends = False
        self.send_delay = 0.0
        self.log: List[tuple] = []
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._outbox: asyncio.Queue = asyncio.Queue()

    # Server side
    async def accept(self, subprotocol: Optional[str] = None) -> None:
        self.accepted_subprotocol = subprotocol

    async def receive(self) -> Dict[str, Any]:
        return await self._inbox.get()

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise RuntimeError("Cannot call send once a close message has been sent")
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        message = json.loads(data)
        self.sent.append(message)
        self.log.append(("send", message["type"]))
        self._outbox.put_nowait(message)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.close_code = code
        self.log.append(("close", code))
        self._inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    # Client side
    def client_send(self, message: Any) -> None:
        text = message if isinstance(message, str) else json.dumps(message)
        self._inbox.put_nowait({"type": "websocket.receive", "text": text})

    def client_disconnect(self, code: int = 1000) -> None:
        self._inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    async def next_message(self, timeout: float = 2.0) -> Dict[str, Any]:
        return await asyncio.wait_for(self._outbox.get(), timeout=timeout)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def upstream_transport() -> RecordingTransport:
    """Recording transport in front of the mock provider app."""
    return RecordingTransport(httpx.ASGITransport(app=mock_provider.app))


@pytest.fixture
async def upstream(upstream_transport):
    client = UpstreamClient(UPSTREAM_URL, transport=upstream_transport)
    yield client
    await client.close()


@pytest.fixture
async def unreachable_upstream():
    client = UpstreamClient(UPSTREAM_URL, transport=httpx.MockTransport(unreachable_handler))
    yield client
    await client.close()


@pytest.fixture
async def gateway(settings, upstream):
    gateway = GraphQLGateway(settings, upstream=upstream)
    await gateway.startup()
    yield gateway
    await gateway.shutdown()
