"""
GraphQL types exposed by the gateway.

A Todo's owner is a tagged variant: the owner id is known but not fetched
(``UnresolvedUser``), a full user is attached (``EmbeddedUser``), or there is
no owner (``AbsentUser``). The ``Todo.user`` field resolver is a total
function over these three cases.
"""

from dataclasses import dataclass
from typing import Optional, Union

import strawberry
from strawberry.types import Info

from graphgate.upstream.models import TodoRecord, UserRecord

# Subscription operation fed by the synthetic event producer
TODO_ADDED = "todoAdded"


@strawberry.type(description="A user known to the upstream provider")
class User:
    id: strawberry.ID
    name: str
    email: str
    phone: str
    website: str

    @classmethod
    def from_record(cls, record: UserRecord) -> "User":
        return cls(
            id=strawberry.ID(record.id),
            name=record.name,
            email=record.email,
            phone=record.phone,
            website=record.website,
        )


@dataclass(frozen=True)
class UnresolvedUser:
    """Only the owner's identifier is known; resolving it needs an upstream call."""
    user_id: str


@dataclass(frozen=True)
class EmbeddedUser:
    """The owner is attached in full; no upstream call needed."""
    user: User


@dataclass(frozen=True)
class AbsentUser:
    """The todo has no owner."""


UserRef = Union[UnresolvedUser, EmbeddedUser, AbsentUser]


@strawberry.type(description="A todo item and its owner")
class Todo:
    id: strawberry.ID
    title: str
    completed: bool
    owner: strawberry.Private[UserRef]

    @strawberry.field(description="Owner of the todo, or null when unknown or unavailable")
    async def user(self, info: Info) -> Optional[User]:
        return await info.context["resolvers"].resolve_todo_user(self)

    @classmethod
    def from_record(cls, record: TodoRecord) -> "Todo":
        owner: UserRef = UnresolvedUser(record.user_id) if record.user_id else AbsentUser()
        return cls(
            id=strawberry.ID(record.id),
            title=record.title,
            completed=record.completed,
            owner=owner,
        )
