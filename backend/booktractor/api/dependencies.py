from typing import Optional

import httpx
from fastapi import Depends, HTTPException, Request, status

from ..core.config import settings
from ..schemas.user import Session
from ..services.navigation_guard import evaluate_guard
from ..services.query_cache import QueryCache
from ..services.rpc_client import RpcClient
from ..services.session_client import AuthClient, SessionContext

_http_client: Optional[httpx.AsyncClient] = None
_rpc_client: Optional[RpcClient] = None
_auth_client: Optional[AuthClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Shared connection pool for the RPC backend, auth provider and uploads."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    return _http_client


async def close_http_client() -> None:
    global _http_client, _rpc_client, _auth_client
    if _http_client is not None:
        await _http_client.aclose()
    _http_client = None
    _rpc_client = None
    _auth_client = None


def get_rpc(request: Request) -> RpcClient:
    """RPC client that forwards the caller's cookies to the backend."""
    global _rpc_client
    if _rpc_client is None:
        _rpc_client = RpcClient(http=get_http_client())
    return _rpc_client.with_cookies(request.headers.get("cookie"))


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthClient(http=get_http_client())
    return _auth_client


def get_session_context(
    request: Request, auth: AuthClient = Depends(get_auth_client)
) -> SessionContext:
    # One context per request; FastAPI caches the dependency within a request.
    return SessionContext(auth, request.headers.get("cookie"))


def _return_path(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


async def get_current_session(
    ctx: SessionContext = Depends(get_session_context),
) -> Optional[Session]:
    return await ctx.load()


async def get_query_cache(
    rpc: RpcClient = Depends(get_rpc),
    session: Optional[Session] = Depends(get_current_session),
) -> QueryCache:
    """Query cache scoped to the signed-in user, if any."""
    return QueryCache(rpc, user_id=session.user.id if session else None)


async def require_session(
    request: Request, ctx: SessionContext = Depends(get_session_context)
) -> Session:
    """Gate a protected route: redirect to login when there is no session."""
    await ctx.load()
    decision = evaluate_guard(ctx.pending, ctx.session, _return_path(request))
    if not decision.authorized:
        raise HTTPException(
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
            detail="Not authenticated",
            headers={"Location": decision.redirect_to or settings.LOGIN_ROUTE},
        )
    return ctx.session  # type: ignore[return-value]
