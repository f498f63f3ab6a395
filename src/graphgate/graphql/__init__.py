"""
GraphQL layer for GraphGate.

Types, resolvers and the executable schema. The gateway that serves them
lives in ``graphgate.graphql.gateway``.
"""

from .types import TODO_ADDED, AbsentUser, EmbeddedUser, Todo, UnresolvedUser, User, UserRef
from .resolvers import Resolvers
from .schema import build_schema

__all__ = [
    "TODO_ADDED",
    "AbsentUser",
    "EmbeddedUser",
    "Todo",
    "UnresolvedUser",
    "User",
    "UserRef",
    "Resolvers",
    "build_schema",
]
