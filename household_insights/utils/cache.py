"""Two-tier TTL cache for insight results and suggestion lookups.

A volatile in-process map sits in front of the durable analytics_cache
table. The durable tier is authoritative across restarts; any error it
raises is logged and treated as a miss or no-op.

Usage:
    from household_insights.utils.cache import get_cache, insights_cache_key

    cache = get_cache()
    key = insights_cache_key(household_id, "comprehensive")
    cached = cache.get(key)
    if cached is None:
        cached = compute()
        cache.set(key, cached, ttl=4 * 60 * 60, scope=household_id)
"""
import copy
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple

from household_insights.config import get_settings
from household_insights.utils.cache_store import SQLCacheStore
from household_insights.utils.helpers import to_utc_datetime
from household_insights.utils.logger import log

settings = get_settings()

PARTIAL_KEY_LENGTH = 10


# ==================== KEYS ====================

def field_cache_key(
    field_id: str,
    record_type_id: Any,
    household_id: str,
    member_id: Any = None,
    partial: Optional[str] = None
) -> str:
    key = f"field:{household_id}:{record_type_id}:{field_id}"
    if member_id:
        key += f":m{member_id}"
    if partial:
        key += f":v{partial[:PARTIAL_KEY_LENGTH]}"
    return key


def general_cache_key(record_type_id: Any, household_id: str, member_id: Any = None) -> str:
    key = f"general:{household_id}:{record_type_id}"
    if member_id:
        key += f":m{member_id}"
    return key


def insights_cache_key(household_id: str, insight_type: str) -> str:
    return f"insights:{household_id}:{insight_type}"


# ==================== VOLATILE TIER ====================

class MemoryCache:
    """In-memory TTL map; each entry remembers the household it belongs to."""

    def __init__(
        self,
        cleanup_interval_seconds: int = 15 * 60,
        clock: Callable[[], float] = time.time
    ):
        self._store: Dict[str, Tuple[Optional[str], float, Any]] = {}
        self._cleanup_interval = cleanup_interval_seconds
        self._clock = clock
        self._last_cleanup = clock()

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Any | None:
        self.sweep()
        entry = self._store.get(key)
        if entry is None:
            return None
        _, expires_at, payload = entry
        if self._clock() >= expires_at:
            self._store.pop(key, None)
            return None
        return copy.deepcopy(payload)

    def set(self, key: str, payload: Any, expires_at: float, scope: Optional[str] = None) -> None:
        self._store[key] = (scope, expires_at, copy.deepcopy(payload))

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def invalidate(self, scope: str) -> int:
        """Remove every entry belonging to a household. Returns count removed."""
        keys = [k for k, (entry_scope, _, _) in list(self._store.items()) if entry_scope == scope]
        for k in keys:
            self._store.pop(k, None)
        return len(keys)

    def sweep(self, force: bool = False) -> int:
        """Drop expired entries, at most once per cleanup interval unless forced."""
        now = self._clock()
        if not force and now - self._last_cleanup < self._cleanup_interval:
            return 0
        self._last_cleanup = now
        expired = [k for k, (_, exp, _) in list(self._store.items()) if now >= exp]
        for k in expired:
            self._store.pop(k, None)
        if expired:
            log.debug(f"Memory cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        self._store.clear()


# ==================== TIERED CACHE ====================

class TieredCache:
    """
    Volatile tier in front of a durable store

    Reads check memory first, then the store; a valid durable hit is copied
    back into memory for its remaining lifetime. Writes go to memory at once
    and to the store on the executor, so storage never delays a result.
    """

    def __init__(
        self,
        memory: MemoryCache,
        store: Optional[SQLCacheStore],
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.time
    ):
        self.memory = memory
        self.store = store
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.cache_write_workers,
            thread_name_prefix="cache-write"
        )
        self.clock = clock
        self._pending: List[Future] = []
        # Bumped on every invalidation; a queued write from an older generation is dropped
        self._generations: Dict[str, int] = {}
        self._generation_lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        payload = self.memory.get(key)
        if payload is not None:
            return payload

        if self.store is None:
            return None

        try:
            entry = self.store.get(key)
        except Exception as e:
            log.warning(f"Durable cache read failed for {key}: {str(e)}")
            return None

        if entry is None:
            return None

        if self.clock() >= entry.expires_at:
            return None

        self.memory.set(key, entry.payload, entry.expires_at, entry.scope)
        return copy.deepcopy(entry.payload)

    def set(self, key: str, payload: Any, ttl: int, scope: str) -> None:
        expires_at = self.clock() + ttl
        self.memory.set(key, payload, expires_at, scope)

        if self.store is None:
            return

        snapshot = copy.deepcopy(payload)
        try:
            future = self.executor.submit(
                self._write_durable, key, snapshot, expires_at, scope, self._generation(scope)
            )
        except Exception as e:
            log.warning(f"Could not schedule durable cache write for {key}: {str(e)}")
            return
        self._track(future)

    def delete(self, key: str) -> None:
        self.memory.delete(key)
        if self.store is None:
            return
        try:
            self.store.delete(key)
        except Exception as e:
            log.warning(f"Durable cache delete failed for {key}: {str(e)}")

    def invalidate(self, scope: str) -> None:
        """Drop every cached entry belonging to a household, in both tiers."""
        removed = self.memory.invalidate(scope)
        log.info(f"Invalidated {removed} memory cache entries for household {scope}")
        if self.store is None:
            return
        with self._generation_lock:
            self._generations[scope] = self._generations.get(scope, 0) + 1
            try:
                self.store.delete_where(scope)
            except Exception as e:
                log.warning(f"Durable cache invalidation failed for household {scope}: {str(e)}")

    def cleanup_expired(self) -> int:
        """Sweep expired durable rows. Returns count removed, 0 on error."""
        self.memory.sweep(force=True)
        if self.store is None:
            return 0
        try:
            removed = self.store.delete_expired(to_utc_datetime(self.clock()))
        except Exception as e:
            log.warning(f"Durable cache cleanup failed: {str(e)}")
            return 0
        if removed:
            log.info(f"Cleaned up {removed} expired cache entries")
        return removed

    def wait_for_pending(self, timeout: Optional[float] = None) -> None:
        """Block until scheduled durable writes have finished."""
        pending, self._pending = self._pending, []
        if pending:
            wait(pending, timeout=timeout)

    def _track(self, future: Future) -> None:
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(future)

    def _generation(self, scope: str) -> int:
        with self._generation_lock:
            return self._generations.get(scope, 0)

    def _write_durable(self, key: str, payload: Any, expires_at: float, scope: str, generation: int) -> None:
        with self._generation_lock:
            if self._generations.get(scope, 0) != generation:
                log.debug(f"Dropping durable cache write for {key}: household {scope} was invalidated")
                return
            try:
                self.store.put(key, payload, expires_at, scope)
            except Exception as e:
                log.warning(f"Durable cache write failed for {key}: {str(e)}")


@lru_cache()
def get_cache() -> TieredCache:
    """Process-wide cache over the configured database"""
    memory = MemoryCache(cleanup_interval_seconds=settings.memory_cache_cleanup_interval_seconds)
    return TieredCache(memory, SQLCacheStore())
