"""Async client for the remote tRPC backend.

Speaks the tRPC HTTP wire format with the superjson envelope: inputs are sent
as ``{"json": <input>}`` and results come back as
``{"result": {"data": {"json": <output>}}}``.
"""

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from ..core.config import settings
from ..utils.json import dumps, loads

logger = logging.getLogger(__name__)

QUERY = "query"
MUTATION = "mutation"

# Every procedure the portal calls, with its kind.
PROCEDURES: Dict[str, str] = {
    # Public catalogue and client flows
    "client.machines.featured": QUERY,
    "client.machines.search": QUERY,
    "client.machines.getDetails": QUERY,
    "client.machines.checkAvailability": QUERY,
    "client.bookings.myBookings": QUERY,
    "client.bookings.getById": QUERY,
    "client.bookings.create": MUTATION,
    "client.bookings.sendMessage": MUTATION,
    "client.bookings.cancel": MUTATION,
    # Owner flows
    "owner.machines.list": QUERY,
    "owner.machines.create": MUTATION,
    "owner.machines.update": MUTATION,
    "owner.machines.archive": MUTATION,
    "owner.bookings.listAll": QUERY,
    "owner.bookings.listByMachine": QUERY,
    "owner.bookings.approve": MUTATION,
    "owner.bookings.reject": MUTATION,
    "owner.bookings.sendBack": MUTATION,
    "owner.bookings.sendMessage": MUTATION,
    "owner.analytics.ganttData": QUERY,
    "owner.analytics.dashboardStats": QUERY,
    # Shared
    "machines.getById": QUERY,
    "machines.instances.listByTemplate": QUERY,
    "machines.instances.generateForTemplate": MUTATION,
    "machines.instances.updateAvailability": MUTATION,
    "bookings.getById": QUERY,
    "profile.getProfile": QUERY,
    "profile.updateProfile": MUTATION,
    "profile.updateProfilePicture": MUTATION,
    "profile.deleteAccount": MUTATION,
    "storage.getUploadUrl": MUTATION,
}


class RpcError(Exception):
    """A remote procedure failed, or could not be reached."""

    def __init__(
        self,
        code: str,
        message: str,
        http_status: Optional[int] = None,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(f"{path}: {code} {message}")
        self.code = code
        self.message = message
        self.http_status = http_status
        self.path = path


_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    500: "INTERNAL_SERVER_ERROR",
}


def _error_from_response(path: str, resp: httpx.Response) -> RpcError:
    try:
        body = loads(resp.content)
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        shape = error.get("json", error)
        data = shape.get("data") or {}
        return RpcError(
            data.get("code") or _HTTP_CODES.get(resp.status_code, "INTERNAL_SERVER_ERROR"),
            shape.get("message") or resp.reason_phrase,
            data.get("httpStatus") or resp.status_code,
            path,
        )
    return RpcError(
        _HTTP_CODES.get(resp.status_code, "INTERNAL_SERVER_ERROR"),
        resp.reason_phrase or f"HTTP {resp.status_code}",
        resp.status_code,
        path,
    )


def _unwrap(path: str, resp: httpx.Response) -> Any:
    try:
        body = loads(resp.content)
    except ValueError as exc:
        raise RpcError("PARSE_ERROR", "Invalid JSON from backend", resp.status_code, path) from exc
    if isinstance(body, dict) and "error" in body:
        raise _error_from_response(path, resp)
    try:
        data = body["result"]["data"]
    except (KeyError, TypeError) as exc:
        raise RpcError("PARSE_ERROR", "Malformed result envelope", resp.status_code, path) from exc
    if isinstance(data, dict) and "json" in data:
        return data["json"]
    return data


class _Procedure:
    """Attribute-chain handle: ``rpc.owner.bookings.approve``."""

    def __init__(self, client: "RpcClient", path: str) -> None:
        self._client = client
        self._path = path

    def __getattr__(self, name: str) -> "_Procedure":
        if name.startswith("_"):
            raise AttributeError(name)
        return _Procedure(self._client, f"{self._path}.{name}")

    async def query(self, input: Any = None) -> Any:
        return await self._client.query(self._path, input)

    async def mutate(self, input: Any = None) -> Any:
        return await self._client.mutate(self._path, input)

    def __repr__(self) -> str:
        return f"<rpc {self._path}>"


class RpcClient:
    """Typed access to the backend procedures.

    One ``httpx.AsyncClient`` is shared across requests; per-request instances
    created with :meth:`with_cookies` forward the caller's browser cookies.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        http: Optional[httpx.AsyncClient] = None,
        headers: Optional[Mapping[str, str]] = None,
        method_override_post: Optional[bool] = None,
        procedures: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.base_url = (base_url or settings.rpc_url).rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        self._headers = dict(headers or {})
        self._post_queries = (
            settings.RPC_METHOD_OVERRIDE_POST
            if method_override_post is None
            else method_override_post
        )
        self._procedures = dict(procedures or PROCEDURES)

    def with_cookies(self, cookie_header: Optional[str]) -> "RpcClient":
        headers = dict(self._headers)
        if cookie_header:
            headers["cookie"] = cookie_header
        else:
            headers.pop("cookie", None)
        return RpcClient(
            self.base_url,
            http=self._http,
            headers=headers,
            method_override_post=self._post_queries,
            procedures=self._procedures,
        )

    def __getattr__(self, name: str) -> _Procedure:
        if name.startswith("_"):
            raise AttributeError(name)
        return _Procedure(self, name)

    def kind_of(self, path: str) -> str:
        try:
            return self._procedures[path]
        except KeyError:
            raise ValueError(f"Unknown procedure: {path}") from None

    def _check(self, path: str, kind: str) -> None:
        actual = self.kind_of(path)
        if actual != kind:
            raise ValueError(f"{path} is a {actual}, not a {kind}")

    async def query(self, path: str, input: Any = None) -> Any:
        self._check(path, QUERY)
        envelope = dumps({"json": input})
        url = f"{self.base_url}/{path}"
        if self._post_queries:
            return await self._send(path, "POST", url, content=envelope)
        return await self._send(path, "GET", url, params={"input": envelope})

    async def mutate(self, path: str, input: Any = None) -> Any:
        self._check(path, MUTATION)
        return await self._send(
            path, "POST", f"{self.base_url}/{path}", content=dumps({"json": input})
        )

    async def _send(self, path: str, method: str, url: str, **kwargs) -> Any:
        headers = {"content-type": "application/json", **self._headers}
        try:
            resp = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("RPC %s transport failure: %s", path, exc)
            raise RpcError("TRANSPORT_ERROR", str(exc) or type(exc).__name__, None, path) from exc
        if resp.status_code >= 400:
            err = _error_from_response(path, resp)
            logger.warning("RPC %s returned %s %s", path, err.code, err.message)
            raise err
        return _unwrap(path, resp)

    async def aclose(self) -> None:
        await self._http.aclose()
