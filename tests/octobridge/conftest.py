"""Shared fixtures for bridge tests."""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from prometheus_client import CollectorRegistry

from octobridge.events.metrics import BridgeMetrics
from octobridge.github.credentials import Credential, InMemoryCredentialStore
from octobridge.github.gateway import AuthGateway
from octobridge.github.http import GitHubTransport
from octobridge.github.oauth import TOKEN_URL, TokenClient


class FakeSession:
    """Chat session that records what the bridge sends and executes."""

    def __init__(self, account_id: str = "alice"):
        self.account_id = account_id
        self.sent: List[str] = []
        self.executed: List[str] = []

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def execute(self, command: str) -> None:
        self.executed.append(command)


def _strip_query(url: httpx.URL) -> str:
    return str(url).split("?", 1)[0]


class RecordingAPI:
    """httpx.MockTransport handler that records requests and replays routes.

    Routes map ``(method, url)`` to a list of responses consumed in order;
    the last response repeats once the list is exhausted.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[tuple, List[tuple]] = {}
        self.handlers: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}

    def add(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        spec = (status_code, json_body if json_body is not None else {}, headers)
        self.routes.setdefault((method, url), []).append(spec)

    def add_handler(
        self,
        method: str,
        url: str,
        handler: Callable[[httpx.Request], httpx.Response],
    ) -> None:
        self.handlers[(method, url)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = _strip_query(request.url)
        handler = self.handlers.get((request.method, url))
        if handler is not None:
            return handler(request)
        responses = self.routes.get((request.method, url))
        if not responses:
            return httpx.Response(404, json={"message": "Not Found"})
        spec = responses.pop(0) if len(responses) > 1 else responses[0]
        status_code, json_body, headers = spec
        return httpx.Response(status_code, json=json_body, headers=headers)

    def calls(self, method: str, url: str) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and _strip_query(r.url) == url
        ]

    def token_calls(self) -> List[httpx.Request]:
        return self.calls("POST", TOKEN_URL)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def decode():
    return request_json


@pytest.fixture
def api() -> RecordingAPI:
    return RecordingAPI()


@pytest.fixture
def metrics() -> BridgeMetrics:
    return BridgeMetrics(registry=CollectorRegistry())


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore(
        {"alice": Credential(access_token="old-access", refresh_token="old-refresh")}
    )


@pytest.fixture
def make_gateway(api, store, metrics) -> Callable[..., AuthGateway]:
    def factory(**kwargs: Any) -> AuthGateway:
        transport = GitHubTransport(
            client=httpx.AsyncClient(transport=httpx.MockTransport(api))
        )
        return AuthGateway(
            credentials=kwargs.get("credentials", store),
            tokens=TokenClient("app-id", "app-secret", transport),
            transport=transport,
            metrics=metrics,
            **{k: v for k, v in kwargs.items() if k in ("clock", "state_ttl")},
        )

    return factory


@pytest.fixture
def gateway(make_gateway) -> AuthGateway:
    return make_gateway()
