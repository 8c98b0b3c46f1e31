import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import fakeredis
import pytest
from dotenv import load_dotenv

# Load environment variables for tests before the settings module is imported
load_dotenv(Path(__file__).resolve().parents[1] / ".env.test")
os.environ.setdefault("REDIS_URL", "disabled")

from booktractor.schemas.user import Session  # noqa: E402
from booktractor.utils import redis_cache  # noqa: E402


class FakeRpc:
    """Stand-in for RpcClient that answers from a path -> response table.

    A response may be a value or a callable taking the input. Exceptions
    (instances) are raised.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None) -> None:
        self.responses: Dict[str, Any] = dict(responses or {})
        self.calls: List[Tuple[str, str, Any]] = []

    def _answer(self, path: str, input: Any) -> Any:
        if path not in self.responses:
            raise AssertionError(f"unexpected rpc call {path}")
        value = self.responses[path]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(input)
        return value

    async def query(self, path: str, input: Any = None) -> Any:
        self.calls.append(("query", path, input))
        return self._answer(path, input)

    async def mutate(self, path: str, input: Any = None) -> Any:
        self.calls.append(("mutation", path, input))
        return self._answer(path, input)

    def paths(self, kind: Optional[str] = None) -> List[str]:
        return [p for k, p, _ in self.calls if kind is None or k == kind]


class FakeAuth:
    def __init__(self, session: Optional[dict] = None) -> None:
        self.session = Session.model_validate(session) if session else None
        self.calls: List[str] = []

    async def get_session(self, cookie_header):
        self.calls.append("get_session")
        return self.session


@pytest.fixture
def fake_redis(monkeypatch):
    fake = fakeredis.FakeStrictRedis()
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: fake)
    return fake


@pytest.fixture
def owner_session() -> dict:
    return {
        "user": {"id": "owner-1", "name": "Olga Owner", "email": "olga@example.com"},
        "session": {"id": "s-1", "expiresAt": "2030-01-01T00:00:00Z"},
    }


@pytest.fixture
def client_session() -> dict:
    return {
        "user": {"id": "client-1", "name": "Carl Client", "email": "carl@example.com"},
        "session": {"id": "s-2"},
    }


@pytest.fixture
def portal(fake_redis) -> Callable:
    """Build a TestClient with the RPC and auth boundaries replaced.

    Usage: ``client, rpc = portal(responses, session=...)``.
    """
    from fastapi.testclient import TestClient

    from booktractor.api.dependencies import get_auth_client, get_rpc
    from booktractor.main import app

    def _make(responses: Optional[Dict[str, Any]] = None, session: Optional[dict] = None):
        rpc = FakeRpc(responses)
        auth = FakeAuth(session)
        app.dependency_overrides[get_rpc] = lambda: rpc
        app.dependency_overrides[get_auth_client] = lambda: auth
        return TestClient(app, follow_redirects=False), rpc

    yield _make
    app.dependency_overrides.clear()
