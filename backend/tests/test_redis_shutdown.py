from fastapi.testclient import TestClient

from booktractor.api import dependencies
from booktractor.main import app
from booktractor.utils import redis_cache


class DummyRedis:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_close_redis_client(monkeypatch):
    dummy = DummyRedis()
    monkeypatch.setattr(redis_cache, "_redis_client", dummy)
    redis_cache.close_redis_client()
    assert dummy.closed
    assert redis_cache._redis_client is None


def test_shutdown_event_closes_clients(monkeypatch):
    dummy = DummyRedis()
    monkeypatch.setattr(redis_cache, "_redis_client", dummy)
    monkeypatch.setattr(dependencies, "_http_client", None)

    with TestClient(app):
        http = dependencies.get_http_client()

    assert dummy.closed
    assert redis_cache._redis_client is None
    assert http.is_closed
    assert dependencies._http_client is None
