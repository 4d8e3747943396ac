from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional, Tuple
import logging
import time

if TYPE_CHECKING:
    from ...models.schemas import CurrentUser

logger = logging.getLogger(__name__)

RECENT_WINDOW_SECONDS = 300


def view_scope(user: "CurrentUser", *parts: Optional[str]) -> str:
    """Cache scope for one caller. The role is part of it so a role change never reuses a view."""
    return ":".join([user.id, user.role.value, *(p or "" for p in parts)])


class BaseViewCache(ABC):
    """Abstract base class for cached read views keyed by path and caller scope"""
    @abstractmethod
    async def get(self, path: str, scope: str) -> Optional[Any]:
        pass
    @abstractmethod
    async def set(self, path: str, scope: str, value: Any, ttl: Optional[int] = None):
        pass
    @abstractmethod
    async def invalidate_path(self, path: str) -> int:
        pass
    @abstractmethod
    async def invalidate_prefix(self, prefix: str) -> int:
        pass
    @abstractmethod
    async def get_cache_info(self) -> Dict[str, Any]:
        pass


class ViewCache(BaseViewCache):
    """In-memory implementation of the view cache.

    Entries expire after ``default_ttl`` seconds. Every invalidation is
    recorded in a bounded log so callers can see what was refreshed and when.
    """
    def __init__(self, key_prefix: str = "view:", default_ttl: int = 60, log_size: int = 500):
        self.cache: Dict[str, Dict[str, Any]] = {}
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl
        self.invalidations: Deque[Tuple[str, float]] = deque(maxlen=log_size)
        logger.info(f"Initialized in-memory view cache with TTL: {self.default_ttl}s")

    def _key(self, path: str, scope: str) -> str:
        return f"{self.key_prefix}{path}|{scope}"

    async def get(self, path: str, scope: str) -> Optional[Any]:
        key = self._key(path, scope)
        entry = self.cache.get(key)
        if not entry:
            return None
        if time.time() > entry["expires"]:
            self.cache.pop(key, None)
            return None
        return entry["value"]

    async def set(self, path: str, scope: str, value: Any, ttl: Optional[int] = None):
        if ttl is None:
            ttl = self.default_ttl
        self.cache[self._key(path, scope)] = {
            "value": value,
            "expires": time.time() + ttl,
        }

    async def invalidate_path(self, path: str) -> int:
        marker = f"{self.key_prefix}{path}|"
        keys_to_remove = [key for key in self.cache.keys() if key.startswith(marker)]
        for key in keys_to_remove:
            self.cache.pop(key, None)
        self.invalidations.append((path, time.time()))
        logger.debug(f"Invalidated {len(keys_to_remove)} cache entries for {path}")
        return len(keys_to_remove)

    async def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose path starts with ``prefix``, e.g. ``/units`` and all ``/units/{id}``."""
        marker = f"{self.key_prefix}{prefix}"
        paths = {key[len(self.key_prefix):].split("|", 1)[0] for key in self.cache if key.startswith(marker)}
        removed = 0
        for path in sorted(paths):
            removed += await self.invalidate_path(path)
        return removed

    def invalidated_since(self, since: float) -> List[str]:
        return [path for path, at in self.invalidations if at >= since]

    async def get_cache_info(self) -> Dict[str, Any]:
        current_time = time.time()
        valid_entries = sum(1 for entry in self.cache.values() if current_time <= entry["expires"])
        return {
            "total_keys": len(self.cache),
            "valid_entries": valid_entries,
            "expired_entries": len(self.cache) - valid_entries,
            "recent_invalidations": self.invalidated_since(current_time - RECENT_WINDOW_SECONDS),
            "default_ttl": self.default_ttl,
            "cache_type": "in_memory",
        }


class ViewInvalidator:
    """Publishes which views went stale after a write."""

    def __init__(self, cache: BaseViewCache):
        self.cache = cache

    @staticmethod
    def unit_paths(unit_id: str) -> List[str]:
        return ["/units", f"/units/{unit_id}", "/dashboard"]

    async def invalidate(self, *paths: str) -> None:
        for path in paths:
            await self.cache.invalidate_path(path)

    async def invalidate_unit(self, unit_id: str) -> None:
        await self.invalidate(*self.unit_paths(unit_id))

    async def invalidate_user(self, user_id: str) -> None:
        """A profile change can alter any unit view (manager email, visibility) and the dashboard."""
        await self.cache.invalidate_prefix("/units")
        await self.invalidate("/dashboard")
        logger.debug(f"Invalidated views after change to user {user_id}")
