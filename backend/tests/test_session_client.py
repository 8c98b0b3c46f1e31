import asyncio
import json

import httpx
import pytest

from booktractor.services.session_client import AuthClient, AuthError, SessionContext

SESSION = {
    "user": {"id": "u-1", "name": "Una", "email": "una@example.com", "image": None},
    "session": {"id": "s-1", "expiresAt": "2030-01-01T00:00:00.000Z", "userAgent": "pytest"},
}


def _auth(handler) -> AuthClient:
    return AuthClient(
        "http://auth.test/api/auth", http=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def test_get_session_without_cookie_skips_call():
    def handler(request):  # pragma: no cover - must not be reached
        raise AssertionError("request sent")

    assert asyncio.run(_auth(handler).get_session(None)) is None


def test_get_session_parses_payload():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, json=SESSION)

    session = asyncio.run(_auth(handler).get_session("better-auth.session_token=t"))
    assert seen == {"path": "/api/auth/get-session", "cookie": "better-auth.session_token=t"}
    assert session.user.id == "u-1"
    assert session.session.user_agent == "pytest"


@pytest.mark.parametrize(
    "response", [httpx.Response(200, json=None), httpx.Response(401, json={"message": "Unauthorized"})]
)
def test_signed_out_session_is_none(response):
    assert asyncio.run(_auth(lambda request: response).get_session("stale=1")) is None


def test_provider_outage_raises():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(AuthError):
        asyncio.run(_auth(handler).get_session("token=1"))


def test_sign_in_relays_cookies():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"user": SESSION["user"], "token": "t", "redirect": False},
            headers=[
                ("set-cookie", "better-auth.session_token=t; Path=/; HttpOnly"),
                ("set-cookie", "better-auth.session_data=d; Path=/; HttpOnly"),
            ],
        )

    result = asyncio.run(_auth(handler).sign_in_email("una@example.com", "secret123"))
    assert seen["path"] == "/api/auth/sign-in/email"
    assert seen["body"] == {"email": "una@example.com", "password": "secret123", "rememberMe": True}
    assert len(result.set_cookies) == 2
    assert result.data["user"]["id"] == "u-1"


def test_sign_in_failure_carries_provider_message():
    def handler(request):
        return httpx.Response(401, json={"code": "INVALID_EMAIL_OR_PASSWORD", "message": "Invalid email or password"})

    with pytest.raises(AuthError) as exc:
        asyncio.run(_auth(handler).sign_in_email("una@example.com", "wrong"))
    assert exc.value.message == "Invalid email or password"
    assert exc.value.code == "INVALID_EMAIL_OR_PASSWORD"
    assert exc.value.status_code == 401


def test_social_and_sign_up_endpoints():
    paths = []

    def handler(request):
        paths.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"url": "https://accounts.example.com/o/auth", "redirect": True})

    auth = _auth(handler)
    asyncio.run(auth.sign_in_social("google", "http://localhost:3000/owner"))
    asyncio.run(auth.sign_up_email("Una", "una@example.com", "secret123"))
    assert paths == [
        ("/api/auth/sign-in/social", {"provider": "google", "callbackURL": "http://localhost:3000/owner"}),
        ("/api/auth/sign-up/email", {"name": "Una", "email": "una@example.com", "password": "secret123"}),
    ]


class CountingAuth:
    def __init__(self):
        self.calls = 0

    async def get_session(self, cookie_header):
        self.calls += 1
        return "session" if cookie_header else None


def test_session_context_fetches_once():
    auth = CountingAuth()
    ctx = SessionContext(auth, "token=1")
    assert ctx.pending

    async def run():
        first = await ctx.load()
        second = await ctx.load()
        return first, second

    assert asyncio.run(run()) == ("session", "session")
    assert auth.calls == 1
    assert not ctx.pending


def test_session_context_invalidate_on_sign_out():
    auth = CountingAuth()
    ctx = SessionContext(auth, "token=1")
    asyncio.run(ctx.load())
    ctx.invalidate()
    assert ctx.pending
    assert ctx.session is None
    assert asyncio.run(ctx.load()) is None
    assert auth.calls == 2
