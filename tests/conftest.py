"""Shared fixtures for the Tasko tests."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from tasko.api_client import ApiClient
from tasko.models import Profile
from tasko.session import SessionProvider
from tasko.storage import MemoryStorage, SessionStore

BASE_URL = "http://tasko.test/api"

ALICE = Profile(id="u-1", email="alice@example.com", username="alice")


class FakeServer:
    """
    Canned responses keyed by (method, path), served through httpx.MockTransport.

    Paths are relative to the API root, e.g. ('GET', '/todos').
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def route(self, method: str, path: str, status: int = 200, json_body: Any = None, text: Optional[str] = None):
        self.routes[(method.upper(), path)] = (status, json_body, text)

    def handler(self, method: str, path: str, func: Callable[[httpx.Request], httpx.Response]):
        self.routes[(method.upper(), path)] = func

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]

        entry = self.routes.get((request.method, path))
        if entry is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        if callable(entry):
            return entry(request)

        status, body, text = entry
        if text is not None:
            return httpx.Response(status, text=text)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last_request.content)


def stored_session(token: str = "tok-123", profile: Profile = ALICE, refresh_token: Optional[str] = None) -> Dict[str, str]:
    """Storage contents as left behind by an earlier login."""
    items = {"token": token, "user": json.dumps(profile.to_dict())}
    if refresh_token:
        items["refreshToken"] = refresh_token
    return items


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return SessionStore(storage)


@pytest.fixture
def provider(store):
    return SessionProvider(store)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def client(server, store):
    return ApiClient(BASE_URL, store, transport=server.transport)
