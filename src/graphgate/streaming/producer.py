"""
Synthetic event producer for the ``todoAdded`` subscription.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

import strawberry

from graphgate.core.logging import get_logger
from graphgate.graphql.types import TODO_ADDED, EmbeddedUser, Todo, User
from .registry import ListenerRegistry

logger = get_logger(__name__)

SYNTHETIC_TITLE = "New synthetic todo"
SYNTHETIC_USER_NAME = "Synthetic User"
SYNTHETIC_USER_EMAIL = "synthetic.user@example.com"
SYNTHETIC_USER_PHONE = "000-000-0000"
SYNTHETIC_USER_WEBSITE = "example.com"


class ProducerState(Enum):
    """Event producer state."""
    IDLE = "idle"
    EMITTING = "emitting"
    STOPPED = "stopped"


@dataclass(frozen=True)
class TodoEvent:
    """One synthetic todo, with its owner embedded, as published to listeners."""
    sequence: int
    todo: Todo
    emitted_at: datetime = field(default_factory=datetime.now)


def build_synthetic_todo() -> Todo:
    """Build a todo with random ids and a fully embedded placeholder user."""
    user = User(
        id=strawberry.ID(str(uuid.uuid4())),
        name=SYNTHETIC_USER_NAME,
        email=SYNTHETIC_USER_EMAIL,
        phone=SYNTHETIC_USER_PHONE,
        website=SYNTHETIC_USER_WEBSITE,
    )
    return Todo(
        id=strawberry.ID(str(uuid.uuid4())),
        title=SYNTHETIC_TITLE,
        completed=False,
        owner=EmbeddedUser(user),
    )


class EventProducer:
    """
    Emits one synthetic ``todoAdded`` event every ``interval`` seconds.

    Runs whether or not anyone is listening; events published with no
    listeners are dropped, never buffered.
    """

    def __init__(self, registry: ListenerRegistry, interval: float = 5.0):
        self.registry = registry
        self.interval = interval
        self.state = ProducerState.IDLE
        self.ticks = 0
        self.deliveries = 0
        self._task: Optional[asyncio.Task] = None
        self.logger = get_logger(__name__)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the repeating timer on the running event loop."""
        if self.running:
            return
        self.state = ProducerState.IDLE
        self._task = asyncio.create_task(self._run())
        self.logger.info(f"Event producer started (interval {self.interval}s)")

    async def stop(self) -> None:
        """Stop ticking and wait for the timer task to finish."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self.state = ProducerState.STOPPED
        self.logger.info("Event producer stopped", ticks=self.ticks, deliveries=self.deliveries)

    def tick(self) -> TodoEvent:
        """Build and publish one event; returns it."""
        self.state = ProducerState.EMITTING
        try:
            self.ticks += 1
            event = TodoEvent(sequence=self.ticks, todo=build_synthetic_todo())
            sent = self.registry.publish(TODO_ADDED, event)
            self.deliveries += sent
            self.logger.debug("Synthetic event emitted", sequence=event.sequence, listeners=sent)
            return event
        finally:
            self.state = ProducerState.IDLE

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval)
                self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Error emitting synthetic event: {e}")

    def get_stats(self) -> dict:
        """Get producer statistics."""
        return {
            "state": self.state.value,
            "interval_seconds": self.interval,
            "ticks": self.ticks,
            "deliveries": self.deliveries,
        }
