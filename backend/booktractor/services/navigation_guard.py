from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from ..core.config import settings
from ..schemas.user import Session

LOADING = "loading"
REDIRECTING = "redirecting"
AUTHORIZED = "authorized"


@dataclass(frozen=True)
class GuardDecision:
    state: str
    redirect_to: Optional[str] = None

    @property
    def authorized(self) -> bool:
        return self.state == AUTHORIZED


def login_redirect(path: str) -> str:
    """Login URL that returns the user to ``path`` after signing in."""
    return f"{settings.LOGIN_ROUTE}?redirect={quote(path, safe='')}"


def evaluate_guard(pending: bool, session: Optional[Session], path: str) -> GuardDecision:
    """Decide what a protected screen shows.

    While the session lookup is in flight the screen is loading. Once it has
    resolved without a session the user is sent to the login route with the
    original path preserved. This is a UX gate; the backend enforces access.
    """
    if pending:
        return GuardDecision(LOADING)
    if session is None:
        return GuardDecision(REDIRECTING, login_redirect(path))
    return GuardDecision(AUTHORIZED)
