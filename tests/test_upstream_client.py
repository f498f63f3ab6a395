"""Tests for the upstream REST client"""

import httpx

from graphgate.core.errors import UpstreamError
from graphgate.upstream.client import UpstreamClient
from graphgate.upstream.models import TodoRecord, UpstreamResult, UserRecord

from .conftest import UPSTREAM_URL


def client_for(handler) -> UpstreamClient:
    return UpstreamClient(UPSTREAM_URL, transport=httpx.MockTransport(handler))


class TestFetchFromProvider:
    """Successful calls against the mock provider"""

    async def test_fetch_todos_respects_limit(self, upstream, upstream_transport):
        result = await upstream.fetch_todos(10)

        assert result.ok
        assert len(result.data) == 10
        assert all(isinstance(todo, TodoRecord) for todo in result.data)
        assert upstream_transport.requests[0].url.params["_limit"] == "10"

    async def test_todo_ids_are_strings(self, upstream):
        result = await upstream.fetch_todos(1)

        todo = result.data[0]
        assert todo.id == "1"
        assert todo.user_id == "1"

    async def test_fetch_users(self, upstream):
        result = await upstream.fetch_users()

        assert result.ok
        assert len(result.data) == 10
        assert all(isinstance(user, UserRecord) for user in result.data)

    async def test_fetch_user_by_id(self, upstream):
        result = await upstream.fetch_user("3")

        assert result.ok
        assert result.data.id == "3"
        assert result.data.email.endswith("@example.com")

    async def test_identifier_is_path_quoted(self, upstream, upstream_transport):
        result = await upstream.fetch_user("../todos")

        assert not result.ok
        assert upstream_transport.requests[0].url.raw_path == b"/users/..%2Ftodos"


class TestFailuresBecomeResults:
    """Failures are returned, never raised"""

    async def test_missing_user_is_failure(self, upstream):
        result = await upstream.fetch_user("999")

        assert not result.ok
        assert result.status_code == 404
        assert isinstance(result.error, UpstreamError)
        assert result.error.resource == "user-by-id"

    async def test_connection_error_is_failure(self, unreachable_upstream):
        todos = await unreachable_upstream.fetch_todos(10)
        users = await unreachable_upstream.fetch_users()
        user = await unreachable_upstream.fetch_user("1")

        assert not todos.ok and not users.ok and not user.ok
        assert todos.data is None and user.data is None
        assert "ConnectError" in str(todos.error)

    async def test_server_error_is_failure(self):
        client = client_for(lambda request: httpx.Response(503))
        result = await client.fetch_users()
        await client.close()

        assert not result.ok
        assert result.status_code == 503

    async def test_invalid_json_is_failure(self):
        client = client_for(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        result = await client.fetch_todos(10)
        await client.close()

        assert not result.ok
        assert "Invalid JSON" in str(result.error)

    async def test_partial_user_is_failure(self):
        partial = {"id": 1, "name": "Leanne", "email": "leanne@example.com"}
        client = client_for(lambda request: httpx.Response(200, json=partial))
        result = await client.fetch_user("1")
        await client.close()

        assert not result.ok
        assert "Unexpected payload" in str(result.error)

    async def test_unexpected_collection_shape_is_failure(self):
        client = client_for(lambda request: httpx.Response(200, json={"todos": []}))
        result = await client.fetch_todos(10)
        await client.close()

        assert not result.ok


class TestUpstreamResult:
    """Tests for the result type"""

    def test_success(self):
        result = UpstreamResult.success([1, 2], status_code=200)
        assert result.ok
        assert result.data == [1, 2]
        assert result.status_code == 200

    def test_failure(self):
        error = UpstreamError("boom", "todos")
        result = UpstreamResult.failure(error)
        assert not result.ok
        assert result.error is error
        assert result.data is None
