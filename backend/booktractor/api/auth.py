import logging
from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, Query, Response, status

from ..core.config import settings
from ..schemas.user import (
    AuthResult,
    EmailSignIn,
    RegisterRequest,
    Session,
    SessionUser,
    SocialSignIn,
)
from ..services.session_client import AuthClient, AuthError, AuthResponse, SessionContext
from ..utils import error_response
from .dependencies import get_auth_client, get_current_session, get_session_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

MIN_PASSWORD_LENGTH = 8


def safe_redirect(target: Optional[str], default: Optional[str] = None) -> str:
    """Only same-site paths are accepted as post-login destinations."""
    fallback = default or settings.DEFAULT_LOGIN_REDIRECT
    if not target or not target.startswith("/") or target.startswith("//"):
        return fallback
    # browsers read a backslash as "/" and drop tabs and newlines
    if "\\" in target or any(ord(ch) < 0x20 or ch == "\x7f" for ch in target):
        return fallback
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return fallback
    return target


def _relay_cookies(response: Response, result: AuthResponse) -> None:
    for cookie in result.set_cookies:
        response.headers.append("set-cookie", cookie)


def _user_from(result: AuthResponse) -> Optional[SessionUser]:
    data = result.data if isinstance(result.data, dict) else {}
    user = data.get("user")
    return SessionUser.model_validate(user) if isinstance(user, dict) else None


@router.get("/login")
async def login_state(
    redirect: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
):
    """Login screen state. Signed-in users are pointed straight at the target."""
    session = await ctx.load()
    return {
        "authenticated": session is not None,
        "redirect_to": safe_redirect(redirect),
        "register_url": "/auth/register",
    }


@router.post("/login", response_model=AuthResult)
async def login(
    data: EmailSignIn,
    response: Response,
    redirect: Optional[str] = Query(None),
    auth: AuthClient = Depends(get_auth_client),
):
    try:
        result = await auth.sign_in_email(data.email, data.password, data.remember_me)
    except AuthError as exc:
        logger.info("Sign-in failed for %s: %s", data.email, exc.message)
        raise error_response(
            exc.message,
            {"password": "invalid"},
            status.HTTP_401_UNAUTHORIZED,
        )
    _relay_cookies(response, result)
    return AuthResult(user=_user_from(result), redirect_to=safe_redirect(redirect))


@router.post("/social", response_model=AuthResult)
async def social_login(
    data: SocialSignIn,
    response: Response,
    redirect: Optional[str] = Query(None),
    auth: AuthClient = Depends(get_auth_client),
):
    target = safe_redirect(redirect)
    callback = data.callback_url or f"{settings.FRONTEND_URL}{target}"
    try:
        result = await auth.sign_in_social(data.provider, callback)
    except AuthError as exc:
        raise error_response(exc.message, {"provider": "unavailable"}, status.HTTP_400_BAD_REQUEST)
    _relay_cookies(response, result)
    url = result.data.get("url") if isinstance(result.data, dict) else None
    return AuthResult(url=url, redirect_to=target)


@router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    response: Response,
    redirect: Optional[str] = Query(None),
    auth: AuthClient = Depends(get_auth_client),
):
    field_errors = {}
    if len(data.password) < MIN_PASSWORD_LENGTH:
        field_errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if data.password != data.confirm_password:
        field_errors["confirm_password"] = "Passwords do not match"
    if field_errors:
        raise error_response("Please fix the highlighted fields", field_errors)

    try:
        result = await auth.sign_up_email(data.name, data.email, data.password)
    except AuthError as exc:
        raise error_response(exc.message, {"email": "rejected"}, status.HTTP_400_BAD_REQUEST)
    _relay_cookies(response, result)
    return AuthResult(user=_user_from(result), redirect_to=safe_redirect(redirect, "/catalog"))


@router.post("/logout")
async def logout(
    response: Response,
    ctx: SessionContext = Depends(get_session_context),
    auth: AuthClient = Depends(get_auth_client),
):
    try:
        result = await auth.sign_out(ctx.cookie_header)
    except AuthError as exc:
        raise error_response(exc.message, {}, status.HTTP_502_BAD_GATEWAY)
    ctx.invalidate()
    _relay_cookies(response, result)
    return {"message": "Signed out", "redirect_to": settings.LOGIN_ROUTE}


@router.get("/session")
async def read_session(session: Optional[Session] = Depends(get_current_session)):
    if session is None:
        return {"authenticated": False, "session": None}
    return {"authenticated": True, "session": session.model_dump(mode="json")}
