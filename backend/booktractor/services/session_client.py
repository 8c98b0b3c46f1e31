"""Client for the hosted auth provider and the per-request session context."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from ..core.config import settings
from ..schemas.user import Session

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """The auth provider rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


@dataclass
class AuthResponse:
    data: Any
    # Raw Set-Cookie values to relay to the browser
    set_cookies: List[str] = field(default_factory=list)


class AuthClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or settings.auth_url).rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    async def _call(
        self,
        method: str,
        endpoint: str,
        cookie_header: Optional[str] = None,
        json: Any = None,
    ) -> AuthResponse:
        headers = {"origin": settings.FRONTEND_URL}
        if cookie_header:
            headers["cookie"] = cookie_header
        try:
            resp = await self._http.request(
                method, f"{self.base_url}{endpoint}", headers=headers, json=json
            )
        except httpx.HTTPError as exc:
            logger.error("Auth provider unreachable on %s: %s", endpoint, exc)
            raise AuthError("Authentication service unreachable") from exc

        try:
            data = resp.json() if resp.content else None
        except ValueError:
            data = None

        if resp.status_code >= 400:
            message = None
            code = None
            if isinstance(data, dict):
                message = data.get("message")
                code = data.get("code")
            logger.warning("Auth %s failed: %s %s", endpoint, resp.status_code, message)
            raise AuthError(message or "Authentication failed", resp.status_code, code)

        return AuthResponse(data, resp.headers.get_list("set-cookie"))

    async def get_session(self, cookie_header: Optional[str]) -> Optional[Session]:
        """Resolve the session for the given cookies, or ``None`` when signed out."""
        if not cookie_header:
            return None
        try:
            result = await self._call("GET", "/get-session", cookie_header)
        except AuthError as exc:
            if exc.status_code == 401:
                return None
            raise
        if not result.data:
            return None
        try:
            return Session.model_validate(result.data)
        except ValidationError as exc:
            logger.warning("Unexpected session payload: %s", exc)
            return None

    async def sign_in_email(
        self, email: str, password: str, remember_me: bool = True, callback_url: Optional[str] = None
    ) -> AuthResponse:
        body = {"email": email, "password": password, "rememberMe": remember_me}
        if callback_url:
            body["callbackURL"] = callback_url
        return await self._call("POST", "/sign-in/email", json=body)

    async def sign_in_social(self, provider: str, callback_url: Optional[str] = None) -> AuthResponse:
        return await self._call(
            "POST",
            "/sign-in/social",
            json={"provider": provider, "callbackURL": callback_url or settings.FRONTEND_URL},
        )

    async def sign_up_email(self, name: str, email: str, password: str) -> AuthResponse:
        return await self._call(
            "POST", "/sign-up/email", json={"name": name, "email": email, "password": password}
        )

    async def sign_out(self, cookie_header: Optional[str]) -> AuthResponse:
        return await self._call("POST", "/sign-out", cookie_header, json={})

    async def aclose(self) -> None:
        await self._http.aclose()


class SessionContext:
    """Session state for one request.

    The session is fetched at most once; :meth:`invalidate` drops it after a
    sign-out so the next :meth:`load` re-resolves.
    """

    def __init__(self, auth: AuthClient, cookie_header: Optional[str]) -> None:
        self._auth = auth
        self.cookie_header = cookie_header
        self._loaded = False
        self._session: Optional[Session] = None

    @property
    def pending(self) -> bool:
        return not self._loaded

    @property
    def session(self) -> Optional[Session]:
        return self._session

    async def load(self) -> Optional[Session]:
        if not self._loaded:
            self._session = await self._auth.get_session(self.cookie_header)
            self._loaded = True
        return self._session

    def invalidate(self) -> None:
        self._session = None
        self._loaded = False
        self.cookie_header = None
