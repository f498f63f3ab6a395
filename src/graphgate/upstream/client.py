"""
HTTP client for the upstream REST provider.

Every call returns an ``UpstreamResult``. Transport errors, non-2xx responses
and payloads that fail validation become failures; nothing is raised to the
caller. Retries, timeout overrides and circuit breaking are not provided.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from graphgate.core.errors import UpstreamError
from graphgate.core.logging import get_logger
from .models import TodoRecord, UpstreamResult, UserRecord

logger = get_logger(__name__)

_TODO_LIST = TypeAdapter(List[TodoRecord])
_USER_LIST = TypeAdapter(List[UserRecord])


class UpstreamClient:
    """
    Async client for the upstream provider's ``todos`` and ``users`` resources.
    """

    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize the client; ``transport`` replaces the network in tests."""
        self.base_url = base_url
        self.client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self.logger = get_logger(__name__)

    async def close(self) -> None:
        """Release pooled connections."""
        await self.client.aclose()
        self.logger.info(f"Upstream client closed: {self.base_url}")

    async def fetch_todos(self, limit: int) -> UpstreamResult[List[TodoRecord]]:
        """Fetch one page of todos."""
        result = await self._get("todos", "/todos", params={"_limit": limit})
        return self._parse(result, "todos", _TODO_LIST)

    async def fetch_users(self) -> UpstreamResult[List[UserRecord]]:
        """Fetch every user."""
        result = await self._get("users", "/users")
        return self._parse(result, "users", _USER_LIST)

    async def fetch_user(self, user_id: str) -> UpstreamResult[UserRecord]:
        """Fetch a single user by its opaque identifier."""
        result = await self._get("user-by-id", f"/users/{quote(str(user_id), safe='')}")
        return self._parse(result, "user-by-id", UserRecord)

    async def _get(
        self,
        resource: str,
        path: str,
        params: Optional[Dict[str, Any]] = None
    ) -> UpstreamResult[Any]:
        try:
            response = await self.client.get(path, params=params)
        except httpx.HTTPError as e:
            return self._fail(UpstreamError(f"{type(e).__name__}: {e}", resource))

        if response.is_error:
            return self._fail(
                UpstreamError(f"HTTP {response.status_code}", resource, response.status_code),
                response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            return self._fail(
                UpstreamError(f"Invalid JSON: {e}", resource, response.status_code),
                response.status_code,
            )

        return UpstreamResult.success(payload, response.status_code)

    def _parse(self, result: UpstreamResult[Any], resource: str, model: Any) -> UpstreamResult[Any]:
        if not result.ok:
            return result
        try:
            if isinstance(model, TypeAdapter):
                data = model.validate_python(result.data)
            else:
                data = model.model_validate(result.data)
        except ValidationError as e:
            return self._fail(
                UpstreamError(f"Unexpected payload: {e.error_count()} validation errors", resource, result.status_code),
                result.status_code,
            )
        return UpstreamResult.success(data, result.status_code)

    def _fail(self, error: UpstreamError, status_code: Optional[int] = None) -> UpstreamResult[Any]:
        self.logger.warning(
            "Upstream request failed",
            resource=error.resource,
            status_code=status_code,
            error=str(error),
        )
        return UpstreamResult.failure(error, status_code)
