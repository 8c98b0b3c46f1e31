from urllib.parse import parse_qs, urlparse

from booktractor.schemas.user import Session
from booktractor.services.navigation_guard import (
    AUTHORIZED,
    LOADING,
    REDIRECTING,
    evaluate_guard,
)


def _redirect_param(url: str) -> str:
    parsed = urlparse(url)
    assert parsed.path == "/auth/login"
    return parse_qs(parsed.query)["redirect"][0]


def test_unauthenticated_loading_then_redirect():
    path = "/owner/bookings"
    first = evaluate_guard(True, None, path)
    assert first.state == LOADING
    assert first.redirect_to is None

    second = evaluate_guard(False, None, path)
    assert second.state == REDIRECTING
    assert _redirect_param(second.redirect_to) == path


def test_redirect_preserves_query_string():
    path = "/owner/bookings?status=pending_renter_approval&machine_id=m 1"
    decision = evaluate_guard(False, None, path)
    assert _redirect_param(decision.redirect_to) == path


def test_authorized_with_session():
    session = Session.model_validate({"user": {"id": "u-1", "email": "u@example.com"}})
    decision = evaluate_guard(False, session, "/profile")
    assert decision.state == AUTHORIZED
    assert decision.authorized
    assert decision.redirect_to is None


def test_protected_route_redirects_to_login(portal):
    client, rpc = portal({}, session=None)
    resp = client.get("/owner/bookings?status=approved_by_renter")
    assert resp.status_code == 307
    assert _redirect_param(resp.headers["location"]) == "/owner/bookings?status=approved_by_renter"
    assert rpc.calls == []


def test_every_protected_area_is_gated(portal):
    client, _ = portal({}, session=None)
    for path in ("/owner", "/owner/machines", "/client", "/client/bookings", "/profile"):
        resp = client.get(path)
        assert resp.status_code == 307, path
        assert _redirect_param(resp.headers["location"]) == path
