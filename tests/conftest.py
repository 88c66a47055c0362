import json
from pathlib import Path
from typing import Any

import pytest
import requests

from ecoconnect_client.cache.query_cache import QueryCache
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.storage.kv_store import AUTH_TOKEN_KEY, KeyValueStore

BASE_URL = "https://api.test"


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        if content is not None:
            self.content = content
        elif payload is None:
            self.content = b""
        else:
            self.content = json.dumps(payload).encode("utf-8")
        self.text = self.content.decode("utf-8", "replace")

    def json(self) -> Any:
        return json.loads(self.content)


class FakeSession:
    """Stands in for requests.Session; answers are queued per (method, path)."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.calls: list[dict[str, Any]] = []

    def add(
        self,
        method: str,
        path: str,
        payload: Any = None,
        status: int = 200,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
        error: Exception | None = None,
    ) -> None:
        answer: Any = error or FakeResponse(status, payload, headers, content)
        self.routes.setdefault((method, path), []).append(answer)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        path = url[len(BASE_URL):]
        self.calls.append({"method": method, "path": path, **kwargs})
        queue = self.routes.get((method, path))
        if not queue:
            return FakeResponse(404, {"error": f"No route for {method} {path}"})
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, Exception):
            raise answer
        return answer

    def paths(self, method: str | None = None) -> list[str]:
        return [
            call["path"]
            for call in self.calls
            if method is None or call["method"] == method
        ]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def token_store(tmp_path: Path) -> KeyValueStore:
    store = KeyValueStore(tmp_path / "session.csv")
    store.set(AUTH_TOKEN_KEY, "token-123")
    return store


@pytest.fixture
def client(session: FakeSession, token_store: KeyValueStore) -> ApiClient:
    return ApiClient(BASE_URL, token_store, session=session)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> QueryCache:
    return QueryCache(clock=clock, sleep=lambda seconds: None)


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def connection_error() -> Exception:
    return requests.ConnectionError("connection refused")
