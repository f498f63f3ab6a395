"""
Records returned by the upstream provider and the result type wrapping them.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class UserRecord(BaseModel):
    """User as served by the upstream provider. Every contact field is required."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    name: str
    email: str
    phone: str
    website: str

    @field_validator("id", mode="before")
    def coerce_id(cls, v):
        """Identifiers are opaque; keep them as strings."""
        return str(v) if v is not None else v


class TodoRecord(BaseModel):
    """Todo as served by the upstream provider; only the owner id is known."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str
    title: str
    completed: bool = False
    user_id: Optional[str] = Field(default=None, alias="userId")

    @field_validator("id", "user_id", mode="before")
    def coerce_ids(cls, v):
        """Identifiers are opaque; keep them as strings."""
        return str(v) if v is not None else v


@dataclass(frozen=True)
class UpstreamResult(Generic[T]):
    """Outcome of one upstream call: ``success(data)`` or ``failure(error)``."""

    ok: bool
    data: Optional[T] = None
    error: Optional[Exception] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, data: T, status_code: Optional[int] = None) -> "UpstreamResult[T]":
        return cls(ok=True, data=data, status_code=status_code)

    @classmethod
    def failure(cls, error: Exception, status_code: Optional[int] = None) -> "UpstreamResult[T]":
        return cls(ok=False, error=error, status_code=status_code)
