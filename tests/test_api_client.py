"""Tests for the API client."""

import asyncio

import httpx
import pytest

from tasko.api_client import (
    GENERIC_ERROR_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    STATUS_MESSAGES,
    ApiClient,
    ApiError,
)
from tasko.storage import MemoryStorage, SessionStore

from conftest import BASE_URL, stored_session


def logged_in_store():
    return SessionStore(MemoryStorage(stored_session(token="tok-123")))


class TestAuthorizationHeader:

    def test_bearer_token_is_attached(self, server):
        server.route("GET", "/todos", json_body=[])
        client = ApiClient(BASE_URL, logged_in_store(), transport=server.transport)

        asyncio.run(client.get("/todos"))

        assert server.last_request.headers["Authorization"] == "Bearer tok-123"
        assert str(server.last_request.url) == "http://tasko.test/api/todos"

    def test_no_header_without_session(self, server, client):
        server.route("GET", "/products", json_body={"data": []})

        asyncio.run(client.get("/products"))

        assert "Authorization" not in server.last_request.headers

    def test_no_header_without_store(self, server):
        server.route("GET", "/products", json_body={"data": []})
        client = ApiClient(BASE_URL, None, transport=server.transport)

        asyncio.run(client.get("/products"))

        assert "Authorization" not in server.last_request.headers

    def test_partial_session_sends_no_token(self, server):
        server.route("GET", "/todos", json_body=[])
        client = ApiClient(BASE_URL, SessionStore(MemoryStorage({"token": "tok-orphan"})), transport=server.transport)

        asyncio.run(client.get("/todos"))

        assert "Authorization" not in server.last_request.headers


class TestResponses:

    def test_json_is_returned_as_is(self, server, client):
        server.route("GET", "/todos", json_body=[{"id": "t-1", "title": "Buy milk"}])
        assert asyncio.run(client.get("/todos")) == [{"id": "t-1", "title": "Buy milk"}]

    def test_envelope_is_unwrapped(self, server, client):
        server.route("GET", "/tags", json_body={
            "code": 200,
            "message": "success",
            "data": [{"id": "g-1", "name": "home"}],
            "timestamp": "2026-10-19T10:00:00Z",
        })
        assert asyncio.run(client.get("/tags")) == [{"id": "g-1", "name": "home"}]

    def test_empty_body_returns_none(self, server, client):
        server.route("DELETE", "/todos/t-1", status=204)
        assert asyncio.run(client.delete("/todos/t-1")) is None

    def test_json_body_is_sent(self, server, client):
        server.route("POST", "/tags", status=201, json_body={"id": "g-1", "name": "home"})
        asyncio.run(client.post("/tags", {"name": "home"}))

        assert server.last_json() == {"name": "home"}
        assert server.last_request.headers["Content-Type"] == "application/json"

    def test_none_params_are_dropped(self, server, client):
        server.route("GET", "/products", json_body={"data": []})
        asyncio.run(client.get("/products", params={"keyword": "mug", "page": None}))

        assert dict(server.last_request.url.params) == {"keyword": "mug"}

    def test_invalid_success_body(self, server, client):
        server.route("GET", "/todos", text="<html>not json</html>")
        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.get("/todos"))
        assert exc_info.value.status == 200


class TestErrors:

    def test_server_message_is_used(self, server, client):
        server.route("POST", "/auth/login", status=401, json_body={"message": "Invalid credentials"})

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.post("/auth/login", {"email": "a@b.c", "password": "nope"}))

        assert exc_info.value.message == "Invalid credentials"
        assert str(exc_info.value) == "Invalid credentials"
        assert exc_info.value.status == 401

    def test_non_json_error_body_gets_fallback_message(self, server, client):
        server.route("GET", "/todos", status=500, text="<html>Internal Server Error</html>")

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.get("/todos"))

        assert exc_info.value.message == STATUS_MESSAGES[500]
        assert exc_info.value.status == 500

    def test_unknown_status_gets_generic_message(self, server, client):
        server.route("GET", "/todos", status=418, text="")

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.get("/todos"))

        assert exc_info.value.message == GENERIC_ERROR_MESSAGE

    def test_validation_errors(self, server, client):
        server.route("POST", "/todos", status=400, json_body={
            "message": ["title should not be empty", "priority must be a valid enum value"],
            "errors": {"title": ["should not be empty"]},
        })

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.post("/todos", {}))

        assert exc_info.value.message == "title should not be empty; priority must be a valid enum value"
        assert exc_info.value.errors == {"title": ["should not be empty"]}

    def test_network_error(self, store):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ApiClient(BASE_URL, store, transport=httpx.MockTransport(refuse))

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.get("/todos"))

        assert exc_info.value.status == 0
        assert exc_info.value.message == NETWORK_ERROR_MESSAGE


class TestUnauthorized:

    def test_rejected_token_triggers_callback(self, server):
        server.route("GET", "/todos", status=401, json_body={"message": "Unauthorized"})
        calls = []

        async def on_unauthorized():
            calls.append("cleared")

        client = ApiClient(BASE_URL, logged_in_store(), on_unauthorized=on_unauthorized, transport=server.transport)

        with pytest.raises(ApiError):
            asyncio.run(client.get("/todos"))
        assert calls == ["cleared"]

    def test_anonymous_401_does_not_trigger_callback(self, server, store):
        server.route("POST", "/auth/login", status=401, json_body={"message": "Invalid credentials"})
        calls = []

        async def on_unauthorized():
            calls.append("cleared")

        client = ApiClient(BASE_URL, store, on_unauthorized=on_unauthorized, transport=server.transport)

        with pytest.raises(ApiError):
            asyncio.run(client.post("/auth/login", {}))
        assert calls == []

    def test_forbidden_does_not_trigger_callback(self, server):
        server.route("GET", "/orders/o-1", status=403, json_body={})
        calls = []

        async def on_unauthorized():
            calls.append("cleared")

        client = ApiClient(BASE_URL, logged_in_store(), on_unauthorized=on_unauthorized, transport=server.transport)

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.get("/orders/o-1"))
        assert exc_info.value.message == STATUS_MESSAGES[403]
        assert calls == []
