import logging
from typing import Any, Dict, Optional, Tuple

from ..core.config import settings
from ..utils import redis_cache
from .rpc_client import RpcClient

logger = logging.getLogger(__name__)

# mutation path -> query namespaces whose cached results it may have changed
INVALIDATES: Dict[str, Tuple[str, ...]] = {
    "owner.bookings.approve": ("owner.bookings", "owner.analytics", "client.bookings", "bookings"),
    "owner.bookings.reject": ("owner.bookings", "owner.analytics", "client.bookings", "bookings"),
    "owner.bookings.sendBack": ("owner.bookings", "owner.analytics", "client.bookings", "bookings"),
    "owner.bookings.sendMessage": ("owner.bookings", "client.bookings", "bookings"),
    "client.bookings.create": (
        "client.bookings",
        "client.machines",
        "owner.bookings",
        "owner.analytics",
    ),
    "client.bookings.sendMessage": ("client.bookings", "owner.bookings", "bookings"),
    "client.bookings.cancel": (
        "client.bookings",
        "client.machines",
        "owner.bookings",
        "owner.analytics",
        "bookings",
    ),
    "owner.machines.create": ("owner.machines", "owner.analytics", "client.machines", "machines"),
    "owner.machines.update": ("owner.machines", "owner.analytics", "client.machines", "machines"),
    "owner.machines.archive": ("owner.machines", "owner.analytics", "client.machines", "machines"),
    "machines.instances.generateForTemplate": (
        "machines",
        "owner.machines",
        "client.machines",
        "owner.analytics",
    ),
    "machines.instances.updateAvailability": ("machines", "owner.machines", "client.machines"),
    "profile.updateProfile": ("profile",),
    "profile.updateProfilePicture": ("profile",),
    "profile.deleteAccount": ("profile",),
}


# Catalogue reads return the same answer to every caller
PUBLIC_NAMESPACES: Tuple[str, ...] = ("client.machines",)


def is_public(path: str) -> bool:
    return any(path.startswith(ns + ".") for ns in PUBLIC_NAMESPACES)


class QueryCache:
    """Redis-backed cache of RPC query results.

    Results are keyed by procedure path and a digest of the input. The backend
    authorizes every other procedure from the caller's cookie, so those results
    are also keyed by ``user_id`` and are not cached at all without one.
    Mutations never go through the cache; call :meth:`invalidate_after` once
    they succeed.
    """

    def __init__(
        self, rpc: RpcClient, ttl: Optional[int] = None, user_id: Optional[str] = None
    ) -> None:
        self.rpc = rpc
        self.ttl = settings.QUERY_CACHE_TTL if ttl is None else ttl
        self.user_id = user_id

    async def fetch(self, path: str, input: Any = None, *, fresh: bool = False) -> Any:
        public = is_public(path)
        if not public and not self.user_id:
            return await self.rpc.query(path, input)
        scope = None if public else self.user_id
        if not fresh:
            cached = redis_cache.get_cached_rpc(path, input, scope)
            if cached is not None and "data" in cached:
                logger.debug("rpc cache hit %s", path)
                return cached["data"]
        data = await self.rpc.query(path, input)
        redis_cache.cache_rpc(data, path, input, expire=self.ttl, scope=scope)
        return data

    async def mutate(self, path: str, input: Any = None) -> Any:
        """Run a mutation and drop the cached queries it affects."""
        result = await self.rpc.mutate(path, input)
        self.invalidate_after(path)
        return result

    def invalidate_after(self, mutation_path: str) -> int:
        namespaces = INVALIDATES.get(mutation_path, ())
        if not namespaces:
            logger.warning("No invalidation rule for %s", mutation_path)
            return 0
        deleted = redis_cache.invalidate_rpc_namespaces(namespaces)
        logger.debug("invalidated %d cached results after %s", deleted, mutation_path)
        return deleted
