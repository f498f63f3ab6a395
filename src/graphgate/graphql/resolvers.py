"""
GraphQL resolvers for the gateway.

Queries are served from the upstream provider. Every upstream failure is
turned into an empty list or null here, so one failing call never fails the
rest of the response.
"""

from typing import TYPE_CHECKING, AsyncGenerator, List, Optional

from graphgate.core.logging import get_logger
from graphgate.streaming.registry import ListenerRegistry
from graphgate.upstream.client import UpstreamClient
from .types import TODO_ADDED, EmbeddedUser, Todo, UnresolvedUser, User

if TYPE_CHECKING:
    from graphgate.streaming.producer import TodoEvent

logger = get_logger(__name__)


class Resolvers:
    """Resolves queries, the ``Todo.user`` field and the ``todoAdded`` subscription."""

    def __init__(self, upstream: UpstreamClient, registry: ListenerRegistry, page_size: int = 10):
        self.upstream = upstream
        self.registry = registry
        self.page_size = page_size
        self.logger = get_logger(__name__)

    def context(self) -> dict:
        """Execution context carrying these resolvers to field resolvers."""
        return {"resolvers": self}

    async def get_todos(self) -> List[Todo]:
        """One page of todos; empty when the upstream call fails."""
        result = await self.upstream.fetch_todos(self.page_size)
        if not result.ok:
            self.logger.info("Degrading getTodos to an empty list", error=str(result.error))
            return []
        return [Todo.from_record(record) for record in result.data]

    async def get_all_users(self) -> List[User]:
        """Every user; empty when the upstream call fails."""
        result = await self.upstream.fetch_users()
        if not result.ok:
            self.logger.info("Degrading getAllUsers to an empty list", error=str(result.error))
            return []
        return [User.from_record(record) for record in result.data]

    async def get_user(self, user_id: Optional[str]) -> Optional[User]:
        """A single user; null for a missing id or a failed upstream call."""
        if not user_id:
            return None
        result = await self.upstream.fetch_user(str(user_id))
        if not result.ok:
            self.logger.info("Degrading getUser to null", user_id=user_id, error=str(result.error))
            return None
        return User.from_record(result.data)

    async def resolve_todo_user(self, todo: Todo) -> Optional[User]:
        """Embedded owner as-is, referenced owner via ``get_user``, otherwise null."""
        owner = todo.owner
        if isinstance(owner, EmbeddedUser):
            return owner.user
        if isinstance(owner, UnresolvedUser):
            return await self.get_user(owner.user_id)
        # AbsentUser
        return None

    async def todo_added(self) -> AsyncGenerator[Todo, None]:
        """Yield each synthetic todo published while this subscription is live."""
        listener = self.registry.register(TODO_ADDED)
        try:
            event: "TodoEvent"
            async for event in listener:
                yield event.todo
        finally:
            self.registry.unregister(listener)
