"""
WebSocket subscription server for the GraphQL gateway.

Speaks ``graphql-transport-ws`` and the legacy ``graphql-ws`` protocol on the
same path as the HTTP endpoint. Each subscription runs as its own task that
executes the subscription document and sends every result as one message.
"""

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional

from fastapi import WebSocket
from strawberry.types.execution import ExecutionResult, PreExecutionError

from graphgate.core.errors import ProtocolError
from graphgate.core.logging import LogContext, get_logger

if TYPE_CHECKING:
    from .gateway import GraphQLGateway

logger = get_logger(__name__)

GRAPHQL_TRANSPORT_WS = "graphql-transport-ws"
GRAPHQL_WS = "graphql-ws"

# Close codes shared by both protocols
CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_TRY_AGAIN_LATER = 1013
CLOSE_BAD_REQUEST = 4400
CLOSE_UNAUTHORIZED = 4401
CLOSE_INIT_TIMEOUT = 4408
CLOSE_DUPLICATE_SUBSCRIBER = 4409
CLOSE_UNSUPPORTED_PROTOCOL = 4406
CLOSE_TOO_MANY_INIT = 4429


@dataclass(frozen=True)
class ProtocolMessages:
    """Message type names for one subscription protocol."""
    subscribe: str
    next: str
    stop: str
    keepalive: str
    terminate: Optional[str] = None
    errors_as_list: bool = True


PROTOCOLS: Dict[str, ProtocolMessages] = {
    GRAPHQL_TRANSPORT_WS: ProtocolMessages(
        subscribe="subscribe",
        next="next",
        stop="complete",
        keepalive="ping",
    ),
    GRAPHQL_WS: ProtocolMessages(
        subscribe="start",
        next="data",
        stop="stop",
        keepalive="ka",
        terminate="connection_terminate",
        errors_as_list=False,
    ),
}


@dataclass
class SubscriptionInfo:
    """Information about an active subscription."""
    subscription_id: str
    query: str
    variables: Dict[str, Any]
    operation_name: Optional[str]
    task: Optional[asyncio.Task] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class ConnectionInfo:
    """Information about a WebSocket connection."""
    connection_id: str
    websocket: WebSocket
    protocol: str
    subscriptions: Dict[str, SubscriptionInfo] = field(default_factory=dict)
    acknowledged: bool = False
    closed: bool = False
    connected_at: datetime = field(default_factory=datetime.now)
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def messages(self) -> ProtocolMessages:
        return PROTOCOLS[self.protocol]


class SubscriptionServer:
    """
    Manages WebSocket connections for GraphQL subscriptions.

    Handles the protocol handshake, subscription lifecycle, keepalives, and
    the drain and close steps of the gateway shutdown.
    """

    def __init__(
        self,
        gateway: "GraphQLGateway",
        connection_init_timeout: float = 10.0,
        keepalive_interval: float = 15.0
    ):
        """Initialize subscription server."""
        self.gateway = gateway
        self.connection_init_timeout = connection_init_timeout
        self.keepalive_interval = keepalive_interval
        self.connections: Dict[str, ConnectionInfo] = {}
        self.logger = get_logger(__name__)
        self._heartbeat_task: Optional[asyncio.Task] = None

    async def endpoint(self, websocket: WebSocket) -> None:
        """ASGI WebSocket endpoint: run one connection until it closes."""
        protocol = self._negotiate(websocket)
        if protocol is None:
            await websocket.close(code=CLOSE_UNSUPPORTED_PROTOCOL)
            return

        if not self.gateway.accepting:
            await websocket.close(code=CLOSE_TRY_AGAIN_LATER)
            return

        connection = await self.connect(websocket, protocol)
        with LogContext(connection_id=connection.connection_id):
            init_timeout = asyncio.create_task(self._expect_init(connection))
            try:
                await self._receive_loop(connection)
            except ProtocolError as e:
                self.logger.warning(f"Protocol violation: {e}", close_code=e.close_code)
                await self.close_connection(connection, e.close_code, str(e))
            finally:
                init_timeout.cancel()
                await self.disconnect(connection.connection_id)

    async def connect(self, websocket: WebSocket, protocol: str) -> ConnectionInfo:
        """Accept a new WebSocket connection."""
        await websocket.accept(subprotocol=protocol)

        connection = ConnectionInfo(
            connection_id=str(uuid.uuid4()),
            websocket=websocket,
            protocol=protocol,
        )
        self.connections[connection.connection_id] = connection

        self.logger.info(
            "WebSocket connection established",
            connection_id=connection.connection_id,
            protocol=protocol,
        )

        # Start keepalives with the first connection
        if len(self.connections) == 1 and self.keepalive_interval > 0:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

        return connection

    async def disconnect(self, connection_id: str) -> None:
        """Forget a connection and stop every subscription it owns."""
        connection = self.connections.pop(connection_id, None)
        if connection is None:
            return

        connection.closed = True
        await self._cancel_subscriptions(connection)

        self.logger.info("WebSocket connection closed", connection_id=connection_id)

        # Stop keepalives if no more connections
        if not self.connections and self._heartbeat_task:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    async def close_connection(self, connection: ConnectionInfo, code: int, reason: str = "") -> None:
        """Close one connection once any message being sent has gone out."""
        async with connection.send_lock:
            if connection.closed:
                return
            connection.closed = True
        await self._cancel_subscriptions(connection)
        try:
            await connection.websocket.close(code=code, reason=reason)
        except Exception as e:
            self.logger.debug(f"Close raced with client disconnect: {e}")

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for running subscriptions to finish delivering; False on timeout."""
        tasks = self._subscription_tasks()
        if not tasks:
            return True

        self.logger.info(f"Draining {len(tasks)} subscriptions")
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            self.logger.warning(f"{len(pending)} subscriptions still running after drain timeout")
        return not pending

    async def close_all(self, code: int = CLOSE_GOING_AWAY, reason: str = "Server shutting down") -> None:
        """Close every open connection."""
        for connection in list(self.connections.values()):
            await self.close_connection(connection, code, reason)
        self.logger.info("All WebSocket connections closed")

    def get_connection_count(self) -> int:
        """Get total number of active connections."""
        return len(self.connections)

    def get_subscription_count(self) -> int:
        """Get total number of active subscriptions."""
        return sum(len(c.subscriptions) for c in self.connections.values())

    def get_stats(self) -> Dict[str, Any]:
        """Get subscription server statistics."""
        by_protocol: Dict[str, int] = {}
        for connection in self.connections.values():
            by_protocol[connection.protocol] = by_protocol.get(connection.protocol, 0) + 1
        return {
            "active_connections": len(self.connections),
            "active_subscriptions": self.get_subscription_count(),
            "connections_by_protocol": by_protocol,
        }

    def _negotiate(self, websocket: WebSocket) -> Optional[str]:
        requested = websocket.scope.get("subprotocols") or []
        for protocol in requested:
            if protocol in PROTOCOLS:
                return protocol
        return None

    async def _receive_loop(self, connection: ConnectionInfo) -> None:
        while True:
            message = await connection.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
            text = message.get("text")
            if text is None:
                raise ProtocolError("Binary messages are not supported", CLOSE_BAD_REQUEST)
            await self._handle_message(connection, self._decode(text))
            if connection.closed:
                return

    def _decode(self, text: str) -> Dict[str, Any]:
        try:
            message = json.loads(text)
        except ValueError:
            raise ProtocolError("Message is not valid JSON", CLOSE_BAD_REQUEST)
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            raise ProtocolError("Message must be an object with a string 'type'", CLOSE_BAD_REQUEST)
        return message

    async def _handle_message(self, connection: ConnectionInfo, message: Dict[str, Any]) -> None:
        message_type = message["type"]
        messages = connection.messages

        if message_type == "connection_init":
            if connection.acknowledged:
                raise ProtocolError("Too many initialisation requests", CLOSE_TOO_MANY_INIT)
            connection.acknowledged = True
            await self._send(connection, {"type": "connection_ack"})
            if connection.protocol == GRAPHQL_WS:
                await self._send(connection, {"type": messages.keepalive})
            return

        if message_type == "ping" and connection.protocol == GRAPHQL_TRANSPORT_WS:
            await self._send(connection, {"type": "pong"})
            return

        if message_type == "pong" and connection.protocol == GRAPHQL_TRANSPORT_WS:
            return

        if message_type == messages.terminate:
            await self.close_connection(connection, CLOSE_NORMAL)
            return

        if not connection.acknowledged:
            raise ProtocolError("Unauthorized", CLOSE_UNAUTHORIZED)

        if message_type == messages.subscribe:
            await self._subscribe(connection, message)
        elif message_type == messages.stop:
            await self._unsubscribe(connection, self._message_id(message))
        else:
            raise ProtocolError(f"Unknown message type '{message_type}'", CLOSE_BAD_REQUEST)

    def _message_id(self, message: Dict[str, Any]) -> str:
        subscription_id = message.get("id")
        if not isinstance(subscription_id, str) or not subscription_id:
            raise ProtocolError("Message is missing a string 'id'", CLOSE_BAD_REQUEST)
        return subscription_id

    async def _subscribe(self, connection: ConnectionInfo, message: Dict[str, Any]) -> None:
        subscription_id = self._message_id(message)
        payload = message.get("payload")
        if not isinstance(payload, dict) or not isinstance(payload.get("query"), str):
            raise ProtocolError("Subscribe payload must contain a 'query' string", CLOSE_BAD_REQUEST)

        if subscription_id in connection.subscriptions:
            raise ProtocolError(f"Subscriber for {subscription_id} already exists", CLOSE_DUPLICATE_SUBSCRIBER)

        if not self.gateway.accepting:
            await self._send_error(connection, subscription_id, "Server is shutting down")
            return

        subscription = SubscriptionInfo(
            subscription_id=subscription_id,
            query=payload["query"],
            variables=payload.get("variables") or {},
            operation_name=payload.get("operationName"),
        )
        connection.subscriptions[subscription_id] = subscription
        subscription.task = asyncio.create_task(self._run_subscription(connection, subscription))

        self.logger.info(f"Subscription added: {subscription_id}")

    async def _unsubscribe(self, connection: ConnectionInfo, subscription_id: str) -> None:
        subscription = connection.subscriptions.pop(subscription_id, None)
        if subscription and subscription.task:
            subscription.task.cancel()
            await asyncio.gather(subscription.task, return_exceptions=True)
            self.logger.info(f"Subscription stopped by client: {subscription_id}")

    async def _run_subscription(self, connection: ConnectionInfo, subscription: SubscriptionInfo) -> None:
        subscription_id = subscription.subscription_id
        stream: Optional[AsyncIterator[ExecutionResult]] = None
        try:
            stream = await self.gateway.schema.subscribe(
                subscription.query,
                variable_values=subscription.variables,
                operation_name=subscription.operation_name,
                context_value=self.gateway.context(),
            )

            first = True
            async for item in stream:
                if first and isinstance(item, PreExecutionError):
                    # Parse or validation failure: nothing was subscribed
                    await self._send_error(
                        connection,
                        subscription_id,
                        [error.formatted for error in item.errors or []],
                    )
                    return
                first = False
                await self._send(connection, {
                    "id": subscription_id,
                    "type": connection.messages.next,
                    "payload": self._format_result(item),
                })

            await self._send(connection, {"id": subscription_id, "type": "complete"})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Subscription {subscription_id} failed: {e}")
            await self._send_error(connection, subscription_id, str(e))
        finally:
            if stream is not None and hasattr(stream, "aclose"):
                try:
                    await stream.aclose()
                except Exception as e:
                    self.logger.debug(f"Error closing subscription stream: {e}")
            connection.subscriptions.pop(subscription_id, None)
            self.logger.debug(f"Cleaned up subscription: {subscription_id}")

    async def _cancel_subscriptions(self, connection: ConnectionInfo) -> None:
        tasks = [s.task for s in connection.subscriptions.values() if s.task and not s.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        connection.subscriptions.clear()

    def _subscription_tasks(self) -> List[asyncio.Task]:
        return [
            subscription.task
            for connection in self.connections.values()
            for subscription in connection.subscriptions.values()
            if subscription.task and not subscription.task.done()
        ]

    def _format_result(self, result: ExecutionResult) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"data": result.data}
        if result.errors:
            payload["errors"] = [error.formatted for error in result.errors]
        if result.extensions:
            payload["extensions"] = result.extensions
        return payload

    async def _send_error(self, connection: ConnectionInfo, subscription_id: str, error: Any) -> bool:
        """Send an error message for one subscription in the connection's protocol."""
        if isinstance(error, str):
            errors = [{"message": error}]
        else:
            errors = list(error)
        payload: Any = errors if connection.messages.errors_as_list else errors[0] if errors else {}
        return await self._send(connection, {"id": subscription_id, "type": "error", "payload": payload})

    async def _send(self, connection: ConnectionInfo, message: Dict[str, Any]) -> bool:
        """Send one message; drops it silently when the connection is gone."""
        async with connection.send_lock:
            if connection.closed:
                return False
            try:
                await connection.websocket.send_text(json.dumps(message))
                return True
            except Exception as e:
                self.logger.debug(f"Dropped message for closed connection {connection.connection_id}: {e}")
                connection.closed = True
                return False

    async def _expect_init(self, connection: ConnectionInfo) -> None:
        await asyncio.sleep(self.connection_init_timeout)
        if not connection.acknowledged and not connection.closed:
            self.logger.warning("Connection initialisation timeout")
            await self.close_connection(connection, CLOSE_INIT_TIMEOUT, "Connection initialisation timeout")

    async def _heartbeat_loop(self) -> None:
        """Send periodic keepalives to every acknowledged connection."""
        while True:
            try:
                await asyncio.sleep(self.keepalive_interval)
                for connection in list(self.connections.values()):
                    if connection.acknowledged:
                        await self._send(connection, {"type": connection.messages.keepalive})
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Error in heartbeat loop: {e}")
