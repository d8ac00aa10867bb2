from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

log = logging.getLogger(__name__)


class KVStore:
    """Minimal JSON key-value interface shared by the cache and rate limiters.

    Writes are best effort and never transactional: ``put_json`` is
    last-writer-wins, ``add_json`` is the single create-if-absent operation.
    """

    def get_json(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def put_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    def add_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store ``value`` only if ``key`` is absent. Returns True when written."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KVStore):
    """In-process store with per-key expiry, for single-worker deployments and tests."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[Tuple[Any, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def _expiry(self, ttl: Optional[int]) -> Optional[float]:
        return self._clock() + ttl if ttl and ttl > 0 else None

    def get_json(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def put_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = (value, self._expiry(ttl))

    def add_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (value, self._expiry(ttl))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


def build_store(redis_url: str, timeout: float = 0.35) -> Optional[KVStore]:
    """Pick a backend from ``REDIS_URL``.

    Empty or ``memory://`` gives a process-local store; a redis URL gives a
    shared store. ``None`` (no store at all) is returned when the Redis
    client cannot be created, which makes every cache and limiter fail open.
    """
    url = (redis_url or "").strip()
    if not url or url.startswith("memory://"):
        return MemoryStore()
    try:
        from portfolio_api.redis_store import RedisStore

        return RedisStore(url, timeout=timeout)
    except Exception as exc:
        log.warning("store: failed to initialize Redis store url=%s: %s", url, exc)
        return None
