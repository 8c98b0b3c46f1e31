import json

import httpx
import pytest
from fastapi.testclient import TestClient

from booktractor.api.auth import safe_redirect
from booktractor.api.dependencies import get_auth_client
from booktractor.main import app
from booktractor.services.session_client import AuthClient

USER = {"id": "u-1", "name": "Una", "email": "una@example.com"}


@pytest.fixture
def auth_portal(fake_redis):
    """TestClient whose auth provider is an httpx mock; returns (client, requests)."""

    def _make(handler):
        requests = []

        def recording(request: httpx.Request):
            requests.append(request)
            return handler(request)

        auth = AuthClient(
            "http://auth.test/api/auth",
            http=httpx.AsyncClient(transport=httpx.MockTransport(recording)),
        )
        app.dependency_overrides[get_auth_client] = lambda: auth
        return TestClient(app, follow_redirects=False), requests

    yield _make
    app.dependency_overrides.clear()


def _signed_in(request):
    return httpx.Response(
        200,
        json={"user": USER, "token": "t"},
        headers=[("set-cookie", "better-auth.session_token=t; Path=/; HttpOnly; SameSite=Lax")],
    )


def test_register_password_mismatch(auth_portal):
    client, requests = auth_portal(_signed_in)
    resp = client.post(
        "/auth/register",
        json={"name": "Una", "email": "una@example.com", "password": "secret123", "confirm_password": "secret124"},
    )
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["field_errors"] == {"confirm_password": "Passwords do not match"}
    assert requests == []


def test_register_short_password(auth_portal):
    client, requests = auth_portal(_signed_in)
    resp = client.post(
        "/auth/register",
        json={"name": "Una", "email": "una@example.com", "password": "short", "confirm_password": "short"},
    )
    assert resp.status_code == 422
    assert "password" in resp.json()["detail"]["field_errors"]
    assert requests == []


def test_register_success_relays_cookie(auth_portal):
    client, requests = auth_portal(_signed_in)
    resp = client.post(
        "/auth/register",
        json={"name": "Una", "email": "una@example.com", "password": "secret123", "confirm_password": "secret123"},
    )
    assert resp.status_code == 201
    assert resp.json()["user"]["id"] == "u-1"
    assert resp.json()["redirect_to"] == "/catalog"
    assert "better-auth.session_token=t" in resp.headers["set-cookie"]
    [request] = requests
    assert request.url.path == "/api/auth/sign-up/email"
    assert json.loads(request.content) == {"name": "Una", "email": "una@example.com", "password": "secret123"}


def test_login_honours_redirect(auth_portal):
    client, _ = auth_portal(_signed_in)
    resp = client.post(
        "/auth/login?redirect=/owner/bookings",
        json={"email": "una@example.com", "password": "secret123"},
    )
    assert resp.status_code == 200
    assert resp.json()["redirect_to"] == "/owner/bookings"
    assert "better-auth.session_token=t" in resp.headers["set-cookie"]


@pytest.mark.parametrize(
    "target",
    [None, "https://evil.example.com", "//evil.example.com", "/\\evil.example.com", "/\t/evil.example.com"],
)
def test_login_default_redirect(auth_portal, target):
    client, _ = auth_portal(_signed_in)
    params = {} if target is None else {"redirect": target}
    resp = client.post(
        "/auth/login", params=params, json={"email": "una@example.com", "password": "secret123"}
    )
    assert resp.json()["redirect_to"] == "/owner"


def test_login_failure_shows_provider_message(auth_portal):
    client, _ = auth_portal(
        lambda request: httpx.Response(401, json={"message": "Invalid email or password"})
    )
    resp = client.post("/auth/login", json={"email": "una@example.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"]["message"] == "Invalid email or password"


def test_login_rejects_malformed_email(auth_portal):
    client, requests = auth_portal(_signed_in)
    resp = client.post("/auth/login", json={"email": "not-an-email", "password": "x"})
    assert resp.status_code == 422
    assert "email" in resp.json()["detail"]["field_errors"]
    assert requests == []


def test_social_sign_in_returns_provider_url(auth_portal):
    client, requests = auth_portal(
        lambda request: httpx.Response(200, json={"url": "https://accounts.example.com/auth", "redirect": True})
    )
    resp = client.post("/auth/social?redirect=/client", json={"provider": "google"})
    assert resp.json()["url"] == "https://accounts.example.com/auth"
    body = json.loads(requests[0].content)
    assert body["callbackURL"].endswith("/client")


def test_logout_forwards_cookie(auth_portal):
    client, requests = auth_portal(
        lambda request: httpx.Response(
            200,
            json={"success": True},
            headers=[("set-cookie", "better-auth.session_token=; Max-Age=0; Path=/")],
        )
    )
    resp = client.post("/auth/logout", headers={"cookie": "better-auth.session_token=t"})
    assert resp.status_code == 200
    assert resp.json()["redirect_to"] == "/auth/login"
    assert requests[0].url.path == "/api/auth/sign-out"
    assert requests[0].headers["cookie"] == "better-auth.session_token=t"
    assert "Max-Age=0" in resp.headers["set-cookie"]


def test_session_endpoint(auth_portal):
    client, _ = auth_portal(lambda request: httpx.Response(200, json={"user": USER, "session": {"id": "s"}}))
    assert client.get("/auth/session").json() == {"authenticated": False, "session": None}
    resp = client.get("/auth/session", headers={"cookie": "better-auth.session_token=t"})
    assert resp.json()["authenticated"] is True
    assert resp.json()["session"]["user"]["email"] == "una@example.com"


def test_login_state_for_signed_in_user(auth_portal):
    client, _ = auth_portal(lambda request: httpx.Response(200, json={"user": USER}))
    resp = client.get(
        "/auth/login?redirect=/owner/machines", headers={"cookie": "better-auth.session_token=t"}
    )
    assert resp.json() == {
        "authenticated": True,
        "redirect_to": "/owner/machines",
        "register_url": "/auth/register",
    }


def test_safe_redirect_keeps_local_paths():
    assert safe_redirect("/owner/bookings?status=pending_renter_approval") == (
        "/owner/bookings?status=pending_renter_approval"
    )
    assert safe_redirect("/\\evil.example.com", "/") == "/"
    assert safe_redirect("/catalog", "/") == "/catalog"
