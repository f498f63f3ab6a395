"""
Listener registry for GraphQL subscriptions.

The registry is owned by the gateway and handed to both the event producer
(which publishes) and the subscription resolvers (which register listeners).
Everything runs on one event loop, so add/remove need no locking.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from graphgate.core.errors import ShutdownInProgressError
from graphgate.core.logging import get_logger

logger = get_logger(__name__)

# Queued behind pending events to end a listener's stream
_END_OF_STREAM = object()


@dataclass(eq=False)
class Listener:
    """One live subscription waiting for published events."""
    operation: str
    listener_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    registered_at: datetime = field(default_factory=datetime.now)
    received: int = 0
    delivered: int = 0
    ended: bool = False
    queue: asyncio.Queue = field(default_factory=asyncio.Queue, repr=False)

    def offer(self, event: Any) -> bool:
        """Queue an event for this listener; refused once the stream has ended."""
        if self.ended:
            return False
        self.queue.put_nowait(event)
        self.received += 1
        return True

    def end(self) -> None:
        """End the stream after every event already queued."""
        if not self.ended:
            self.ended = True
            self.queue.put_nowait(_END_OF_STREAM)

    @property
    def pending(self) -> int:
        return self.received - self.delivered

    def __aiter__(self) -> "Listener":
        return self

    async def __anext__(self) -> Any:
        item = await self.queue.get()
        if item is _END_OF_STREAM:
            raise StopAsyncIteration
        self.delivered += 1
        return item


class ListenerRegistry:
    """
    Registry of active subscription listeners keyed by listener id.

    ``publish`` fans one event out to every listener of an operation without
    blocking; ``close`` refuses new listeners and ends the existing streams
    after the events they already hold.
    """

    def __init__(self):
        """Initialize an empty, open registry."""
        self._listeners: Dict[str, Listener] = {}
        self._accepting = True
        self.logger = get_logger(__name__)

    @property
    def accepting(self) -> bool:
        return self._accepting

    def register(self, operation: str) -> Listener:
        """Register a new listener for a subscription operation."""
        if not self._accepting:
            raise ShutdownInProgressError("Server is shutting down; subscriptions are closed")

        listener = Listener(operation=operation)
        self._listeners[listener.listener_id] = listener
        self.logger.info(
            "Listener registered",
            listener_id=listener.listener_id,
            operation=operation,
            active=len(self._listeners),
        )
        return listener

    def unregister(self, listener: Listener) -> bool:
        """Remove a listener; safe to call more than once."""
        listener.end()
        removed = self._listeners.pop(listener.listener_id, None) is not None
        if removed:
            self.logger.info(
                "Listener unregistered",
                listener_id=listener.listener_id,
                delivered=listener.delivered,
                active=len(self._listeners),
            )
        return removed

    def publish(self, operation: str, event: Any) -> int:
        """Queue ``event`` for every listener of ``operation``; returns the fan-out."""
        sent_count = 0
        for listener in list(self._listeners.values()):
            if listener.operation == operation and listener.offer(event):
                sent_count += 1

        self.logger.debug(f"Published to {sent_count} listeners on '{operation}'")
        return sent_count

    def close(self) -> None:
        """Stop accepting listeners and end every stream after its queued events."""
        if not self._accepting:
            return
        self._accepting = False
        for listener in list(self._listeners.values()):
            listener.end()
        self.logger.info("Listener registry closed", active=len(self._listeners))

    def listeners(self, operation: Optional[str] = None) -> List[Listener]:
        """Snapshot of active listeners, optionally filtered by operation."""
        return [
            listener for listener in self._listeners.values()
            if operation is None or listener.operation == operation
        ]

    def __len__(self) -> int:
        return len(self._listeners)

    def get_stats(self) -> Dict[str, Any]:
        """Get registry statistics."""
        by_operation: Dict[str, int] = {}
        for listener in self._listeners.values():
            by_operation[listener.operation] = by_operation.get(listener.operation, 0) + 1
        return {
            "accepting": self._accepting,
            "active_listeners": len(self._listeners),
            "listeners_by_operation": by_operation,
        }
