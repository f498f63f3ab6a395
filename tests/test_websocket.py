"""Tests for the WebSocket subscription server"""

import asyncio

import pytest

from graphgate.graphql.websocket import (
    CLOSE_BAD_REQUEST,
    CLOSE_DUPLICATE_SUBSCRIBER,
    CLOSE_INIT_TIMEOUT,
    CLOSE_TOO_MANY_INIT,
    CLOSE_UNAUTHORIZED,
    CLOSE_UNSUPPORTED_PROTOCOL,
    GRAPHQL_WS,
)

from .conftest import FakeWebSocket, eventually

SUBSCRIPTION = "subscription { todoAdded { id title completed user { id name email phone website } } }"


async def open_connection(gateway, websocket):
    task = asyncio.create_task(gateway.subscriptions.endpoint(websocket))
    websocket.client_send({"type": "connection_init"})
    assert (await websocket.next_message())["type"] == "connection_ack"
    return task


async def subscribe(gateway, websocket, subscription_id="1", start_type="subscribe"):
    websocket.client_send({"id": subscription_id, "type": start_type, "payload": {"query": SUBSCRIPTION}})
    await eventually(lambda: len(gateway.registry) >= 1)


class TestHandshake:
    """Connection-level protocol behaviour"""

    async def test_unsupported_subprotocol_rejected(self, gateway):
        websocket = FakeWebSocket(subprotocols=["chat"])
        await gateway.subscriptions.endpoint(websocket)

        assert websocket.close_code == CLOSE_UNSUPPORTED_PROTOCOL
        assert websocket.accepted_subprotocol is None

    async def test_ack_and_ping(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)

        assert websocket.accepted_subprotocol == "graphql-transport-ws"
        websocket.client_send({"type": "ping"})
        assert (await websocket.next_message())["type"] == "pong"

        websocket.client_disconnect()
        await task
        assert gateway.subscriptions.get_connection_count() == 0

    async def test_subscribe_before_init_is_unauthorized(self, gateway):
        websocket = FakeWebSocket()
        task = asyncio.create_task(gateway.subscriptions.endpoint(websocket))
        websocket.client_send({"id": "1", "type": "subscribe", "payload": {"query": SUBSCRIPTION}})
        await task

        assert websocket.close_code == CLOSE_UNAUTHORIZED

    async def test_double_init_closes(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        websocket.client_send({"type": "connection_init"})
        await task

        assert websocket.close_code == CLOSE_TOO_MANY_INIT

    @pytest.mark.parametrize("message", ["not json", "[]", '{"type": 3}', '{"type": "mystery"}'])
    async def test_malformed_message_closes(self, gateway, message):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        websocket.client_send(message)
        await task

        assert websocket.close_code == CLOSE_BAD_REQUEST

    async def test_missing_init_times_out(self, gateway):
        gateway.subscriptions.connection_init_timeout = 0.05
        websocket = FakeWebSocket()
        await asyncio.wait_for(gateway.subscriptions.endpoint(websocket), timeout=2.0)

        assert websocket.close_code == CLOSE_INIT_TIMEOUT


class TestSubscriptions:
    """todoAdded delivery over graphql-transport-ws"""

    async def test_receives_each_tick(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        await subscribe(gateway, websocket)

        events = [gateway.producer.tick() for _ in range(3)]
        messages = [await websocket.next_message() for _ in range(3)]

        assert [m["type"] for m in messages] == ["next"] * 3
        assert all(m["id"] == "1" for m in messages)
        payloads = [m["payload"]["data"]["todoAdded"] for m in messages]
        assert [p["id"] for p in payloads] == [e.todo.id for e in events]
        assert all(p["completed"] is False for p in payloads)
        assert payloads[0]["user"]["id"] == events[0].todo.owner.user.id

        websocket.client_disconnect()
        await task

    async def test_embedded_user_needs_no_upstream_call(self, gateway, upstream_transport):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        await subscribe(gateway, websocket)

        gateway.producer.tick()
        await websocket.next_message()

        assert upstream_transport.requests == []
        websocket.client_disconnect()
        await task

    async def test_client_complete_unregisters_listener(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        await subscribe(gateway, websocket)

        websocket.client_send({"id": "1", "type": "complete"})
        await eventually(lambda: len(gateway.registry) == 0)

        assert gateway.producer.tick() is not None
        assert gateway.producer.deliveries == 0
        websocket.client_disconnect()
        await task

    async def test_duplicate_id_closes(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        await subscribe(gateway, websocket)
        websocket.client_send({"id": "1", "type": "subscribe", "payload": {"query": SUBSCRIPTION}})
        await task

        assert websocket.close_code == CLOSE_DUPLICATE_SUBSCRIBER
        assert len(gateway.registry) == 0

    async def test_invalid_document_sends_error(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        websocket.client_send({"id": "7", "type": "subscribe", "payload": {"query": "subscription { nope }"}})

        message = await websocket.next_message()
        assert message["type"] == "error"
        assert message["id"] == "7"
        assert isinstance(message["payload"], list) and message["payload"]

        websocket.client_disconnect()
        await task

        assert ("send", "next") not in websocket.log
        assert ("send", "complete") not in websocket.log
        assert len(gateway.registry) == 0

    async def test_disconnect_removes_listener(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        await subscribe(gateway, websocket)

        websocket.client_disconnect()
        await task

        assert len(gateway.registry) == 0
        gateway.producer.tick()
        assert gateway.producer.deliveries == 0

    async def test_send_racing_closed_socket_is_dropped(self, gateway):
        websocket = FakeWebSocket()
        task = await open_connection(gateway, websocket)
        await subscribe(gateway, websocket)
        listener = gateway.registry.listeners()[0]

        websocket.fail_sends = True
        gateway.producer.tick()
        await eventually(lambda: listener.delivered == 1)
        websocket.client_disconnect()
        await task

        assert len(gateway.registry) == 0
        assert listener.delivered == listener.received == 1


class TestLegacyProtocol:
    """The graphql-ws (subscriptions-transport-ws) protocol"""

    async def test_start_data_stop(self, gateway):
        websocket = FakeWebSocket(subprotocols=[GRAPHQL_WS])
        task = await open_connection(gateway, websocket)
        assert (await websocket.next_message())["type"] == "ka"

        await subscribe(gateway, websocket, start_type="start")
        gateway.producer.tick()
        message = await websocket.next_message()

        assert message["type"] == "data"
        assert message["payload"]["data"]["todoAdded"]["title"] == "New synthetic todo"

        websocket.client_send({"id": "1", "type": "stop"})
        await eventually(lambda: len(gateway.registry) == 0)

        websocket.client_send({"type": "connection_terminate"})
        await task
        assert websocket.close_code == 1000

    async def test_invalid_document_error_is_single_object(self, gateway):
        websocket = FakeWebSocket(subprotocols=[GRAPHQL_WS])
        task = await open_connection(gateway, websocket)
        await websocket.next_message()

        websocket.client_send({"id": "2", "type": "start", "payload": {"query": "{"}})
        message = await websocket.next_message()

        assert message["type"] == "error"
        assert "message" in message["payload"]
        websocket.client_disconnect()
        await task
        assert [entry for entry in websocket.log if entry[0] == "send"][-1] == ("send", "error")
