"""Two fixed-window limiters over the shared key-value store.

The session limiter throttles layout regeneration after a dislike; the
generate limiter caps layout generation per client IP. Both fail open:
with no store, or when the store misbehaves, every check says "not limited".

Check and update are separate calls. Two concurrent requests can both pass
the check before either records itself.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from pydantic import ValidationError

from portfolio_api.hashing import generate_rate_key, session_rate_key
from portfolio_api.models import GenerateRateLimitEntry, RateLimitEntry
from portfolio_api.store import KVStore

log = logging.getLogger(__name__)

WINDOW_MS = 60_000
GENERATE_MAX_REQUESTS = 3
SESSION_ENTRY_TTL = 300
GENERATE_ENTRY_TTL = 120


@dataclass(frozen=True)
class RateLimitResult:
    limited: bool
    retry_after: Optional[int] = None


NOT_LIMITED = RateLimitResult(limited=False)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _retry_after(elapsed_ms: int) -> int:
    return max(1, math.ceil((WINDOW_MS - elapsed_ms) / 1000))


def _load(store: Optional[KVStore], key: str, model):
    if store is None:
        return None
    try:
        raw = store.get_json(key)
        return model.model_validate(raw) if raw is not None else None
    except ValidationError:
        log.warning("ratelimit.bad_entry key=%s", key)
        return None
    except Exception as exc:
        log.warning("ratelimit.store_error key=%s: %s", key, exc)
        return None


def _save(store: Optional[KVStore], key: str, entry, ttl: int) -> None:
    if store is None:
        return
    try:
        store.put_json(key, entry.to_json_dict(), ttl=ttl)
    except Exception as exc:
        log.warning("ratelimit.store_error key=%s: %s", key, exc)


def check_rate_limit(store: Optional[KVStore], session_id: str, now: Optional[int] = None) -> RateLimitResult:
    entry = _load(store, session_rate_key(session_id), RateLimitEntry)
    if entry is None:
        return NOT_LIMITED
    now = _now_ms() if now is None else now
    elapsed = now - entry.last_dislike
    if elapsed < WINDOW_MS:
        return RateLimitResult(limited=True, retry_after=_retry_after(elapsed))
    return NOT_LIMITED


def update_rate_limit(store: Optional[KVStore], session_id: str, now: Optional[int] = None) -> None:
    now = _now_ms() if now is None else now
    _save(store, session_rate_key(session_id), RateLimitEntry(last_dislike=now, count=1), SESSION_ENTRY_TTL)


def check_generate_rate_limit(store: Optional[KVStore], ip: str, now: Optional[int] = None) -> RateLimitResult:
    entry = _load(store, generate_rate_key(ip), GenerateRateLimitEntry)
    if entry is None:
        return NOT_LIMITED
    now = _now_ms() if now is None else now
    elapsed = now - entry.window_start
    if elapsed >= WINDOW_MS:
        return NOT_LIMITED
    if entry.count >= GENERATE_MAX_REQUESTS:
        return RateLimitResult(limited=True, retry_after=_retry_after(elapsed))
    return NOT_LIMITED


def update_generate_rate_limit(store: Optional[KVStore], ip: str, now: Optional[int] = None) -> None:
    now = _now_ms() if now is None else now
    key = generate_rate_key(ip)
    entry = _load(store, key, GenerateRateLimitEntry)
    if entry is not None and now - entry.window_start < WINDOW_MS:
        entry = GenerateRateLimitEntry(window_start=entry.window_start, count=entry.count + 1)
    else:
        entry = GenerateRateLimitEntry(window_start=now, count=1)
    _save(store, key, entry, GENERATE_ENTRY_TTL)


def client_ip(headers: Mapping[str, str]) -> str:
    ip = (headers.get("CF-Connecting-IP") or headers.get("cf-connecting-ip") or "").strip()
    if ip:
        return ip
    forwarded = headers.get("X-Forwarded-For") or headers.get("x-forwarded-for") or ""
    first = forwarded.split(",")[0].strip()
    return first or "unknown"
