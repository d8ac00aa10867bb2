from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

from portfolio_api.store import KVStore

log = logging.getLogger(__name__)


class RedisStore(KVStore):
    """Redis-backed store shared between workers.

    Every command error is logged and swallowed: reads become misses and
    writes become no-ops, so callers degrade instead of failing the request.
    """

    def __init__(self, redis_url: str, timeout: float = 0.35, client: Optional["redis.Redis"] = None) -> None:
        # Connection is lazy; nothing hits the network until the first command.
        self._client = client or redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )

    def get_json(self, key: str) -> Optional[Any]:
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            log.warning("store: Redis get failed key=%s: %s", key, exc)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("store: dropping undecodable value key=%s", key)
            return None

    def put_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        raw = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        try:
            if ttl and ttl > 0:
                self._client.setex(key, ttl, raw)
            else:
                self._client.set(key, raw)
        except redis.RedisError as exc:
            log.warning("store: Redis put failed key=%s: %s", key, exc)

    def add_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        raw = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        try:
            written = self._client.set(key, raw, nx=True, ex=ttl if ttl and ttl > 0 else None)
        except redis.RedisError as exc:
            log.warning("store: Redis add failed key=%s: %s", key, exc)
            return False
        return bool(written)

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            log.warning("store: Redis delete failed key=%s: %s", key, exc)
