"""Deterministic cache-key helpers.

``hash_string`` is a 32-bit rolling hash (``h = h*31 + unit``) over UTF-16
code units, so keys match those written by the JavaScript frontend tooling.
It is not collision resistant and must only be used for cache keys.
"""
from __future__ import annotations

from typing import Optional

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

INTENT_PREFIX = "intent:"
TAG_PREFIX = "tag:"
LAYOUT_PREFIX = "layout:"
RATE_LIMIT_PREFIX = "ratelimit:"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def hash_string(s: str) -> str:
    data = (s or "").encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = _to_int32(h * 31 + unit)
    return _base36(abs(h))


def normalize_intent(custom_intent: str) -> str:
    return (custom_intent or "").lower().strip()[:50]


def intent_cache_key(custom_intent: str) -> str:
    return f"{INTENT_PREFIX}{hash_string(normalize_intent(custom_intent))}"


def tag_key(tag_name: str) -> str:
    return f"{TAG_PREFIX}{tag_name}"


def session_rate_key(session_id: str) -> str:
    return f"{RATE_LIMIT_PREFIX}{session_id}"


def generate_rate_key(client_ip: str) -> str:
    return f"{RATE_LIMIT_PREFIX}generate:{client_ip}"


def layout_cache_key(
    tag: str,
    device_type: str,
    time_of_day: str,
    country: Optional[str],
    custom_guidelines: Optional[str] = None,
) -> str:
    context_hash = hash_string(f"{device_type}:{time_of_day}:{country or 'XX'}")
    guidelines_part = hash_string(custom_guidelines) if custom_guidelines else "default"
    return f"{LAYOUT_PREFIX}{tag}:{guidelines_part}:{context_hash}"
