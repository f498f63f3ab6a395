"""
Executable schema assembly.

Binds the resolvers into the root Query and Subscription types and builds one
``strawberry.Schema``. The gateway builds it once at startup and never
rebuilds it.
"""

from contextlib import aclosing
from typing import AsyncGenerator, List, Optional

import strawberry
from strawberry import Schema

from graphgate.core.logging import get_logger
from .resolvers import Resolvers
from .types import Todo, User

logger = get_logger(__name__)


def build_schema(resolvers: Resolvers) -> Schema:
    """Create the executable schema bound to ``resolvers``."""

    @strawberry.type
    class Query:
        @strawberry.field(description="One page of todos from the upstream provider")
        async def get_todos(self) -> List[Todo]:
            return await resolvers.get_todos()

        @strawberry.field(description="Every user from the upstream provider")
        async def get_all_users(self) -> List[User]:
            return await resolvers.get_all_users()

        @strawberry.field(description="A single user, or null when missing or unavailable")
        async def get_user(self, id: Optional[strawberry.ID] = None) -> Optional[User]:
            return await resolvers.get_user(id)

    @strawberry.type
    class Subscription:
        @strawberry.subscription(description="Synthetic todos as they are produced")
        async def todo_added(self) -> AsyncGenerator[Todo, None]:
            async with aclosing(resolvers.todo_added()) as todos:
                async for todo in todos:
                    yield todo

    schema = Schema(query=Query, subscription=Subscription)

    logger.info("GraphQL schema created successfully")
    return schema
