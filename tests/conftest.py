"""Shared fixtures: a recording fake of the memory API."""

import json

import httpx
import pytest

from velixar_mcp.client import VelixarClient
from velixar_mcp.dispatcher import MemoryDispatcher


class FakeAPI:
    """Serves canned JSON per path and records every request."""

    def __init__(self):
        self.responses: dict[str, tuple[int, object]] = {}
        self.requests: list[httpx.Request] = []

    def respond(self, path: str, body: object, status: int = 200) -> None:
        self.responses[path] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.get(request.url.path, (200, {}))
        return httpx.Response(status, json=body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_body(self) -> dict:
        return json.loads(self.last.content)

    def sent(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def client(api: FakeAPI) -> VelixarClient:
    return VelixarClient(
        "https://api.test",
        "test-key",
        transport=httpx.MockTransport(api.handler),
    )


@pytest.fixture
def dispatcher(client: VelixarClient) -> MemoryDispatcher:
    return MemoryDispatcher(client, "test-user")
