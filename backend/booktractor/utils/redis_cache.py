import hashlib
import logging
import os
import random
from typing import Any, Iterable, Optional

import redis

from ..core.config import settings
from .json import canonical_dumps, dumps, loads

_redis_client: Optional[redis.Redis] = None

RPC_KEY_PREFIX = "rpc"


class _NullRedis:
    """No-op Redis client used when Redis is disabled or unavailable.

    Methods mirror the minimal surface used by the query cache so callers can
    proceed without needing try/except around get_redis_client().
    """

    def get(self, key: str):
        return None

    def setex(self, key: str, expire: int, value: str):
        return None

    def scan_iter(self, pattern: str):
        return iter(())

    def delete(self, key: str):
        return 0

    def close(self):
        return None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        url = (settings.REDIS_URL or "").strip()
        # Allow disabling via empty/none/disabled/false
        if not url or url.lower() in {"none", "disabled", "false", "0"}:
            _redis_client = _NullRedis()  # type: ignore[assignment]
            return _redis_client
        try:
            conn_to = float(os.getenv("REDIS_CONNECT_TIMEOUT", "0.5"))
        except ValueError:
            conn_to = 0.5
        try:
            read_to = float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5"))
        except ValueError:
            read_to = 0.5
        try:
            _redis_client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=conn_to,
                socket_timeout=read_to,
            )
        except (ValueError, redis.exceptions.RedisError) as exc:
            logging.warning("Invalid REDIS_URL, caching disabled: %s", exc)
            _redis_client = _NullRedis()  # type: ignore[assignment]
    return _redis_client


def _apply_jitter(expire: int) -> int:
    """Return a TTL with a small random jitter to prevent cache stampedes."""
    return expire + random.randint(0, max(1, expire // 10))


def rpc_key(path: str, input: Any = None, scope: Optional[str] = None) -> str:
    """Return the cache key for one procedure call.

    The input is serialized with sorted keys so equal inputs share a key
    regardless of dict ordering. ``scope`` (the caller's user id) separates
    results the backend authorizes per user.
    """
    digest = hashlib.sha256(canonical_dumps(input).encode("utf-8")).hexdigest()
    if scope:
        return f"{RPC_KEY_PREFIX}:{path}:u:{scope}:{digest}"
    return f"{RPC_KEY_PREFIX}:{path}:{digest}"


def get_cached_rpc(path: str, input: Any = None, scope: Optional[str] = None) -> Optional[Any]:
    """Return the cached result envelope for ``path``/``input`` if present.

    The stored value is ``{"data": ...}`` so a cached ``None`` result is
    distinguishable from a miss.
    """
    client = get_redis_client()
    key = rpc_key(path, input, scope)
    try:
        data = client.get(key)
    except redis.exceptions.RedisError as exc:
        logging.warning("Redis unavailable: %s", exc)
        return None
    if not data:
        return None
    try:
        return loads(data)
    except ValueError as exc:
        logging.warning("Could not decode rpc cache for key %s: %s", key, exc)
        return None


def cache_rpc(
    data: Any, path: str, input: Any = None, expire: int = 60, scope: Optional[str] = None
) -> None:
    client = get_redis_client()
    key = rpc_key(path, input, scope)
    try:
        client.setex(key, _apply_jitter(expire), dumps({"data": data}))
    except redis.exceptions.RedisError as exc:
        logging.warning("Could not cache %s: %s", path, exc)
    return None


def invalidate_rpc_namespaces(namespaces: Iterable[str]) -> int:
    """Delete every cached result whose procedure path starts with a namespace.

    Returns the number of keys deleted (0 on Redis unavailability).
    """
    client = get_redis_client()
    deleted = 0
    try:
        for namespace in namespaces:
            for key in client.scan_iter(f"{RPC_KEY_PREFIX}:{namespace}.*"):
                deleted += int(client.delete(key) or 0)
    except redis.exceptions.RedisError as exc:
        logging.warning("Could not clear rpc cache: %s", exc)
    return deleted


def close_redis_client() -> None:
    """Close the global Redis client if it exists."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.exceptions.RedisError as exc:  # pragma: no cover - best effort
            logging.warning("Error closing Redis client: %s", exc)
        finally:
            _redis_client = None
