"""Derive device, geo, time and network facts about a visitor from request metadata.

Geo facts come from the edge proxy's visitor-location headers (Cloudflare
``CF-*`` naming). Every field has a safe default, so extraction never fails.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Mapping, Optional
from zoneinfo import ZoneInfo

from portfolio_api.models import Device, Geo, Network, TimeContext, UIHints, VisitorContext

_MOBILE_RE = re.compile(r"mobile|iphone|ipod|android.*mobile|windows phone|blackberry", re.IGNORECASE)
_TABLET_RE = re.compile(r"tablet|ipad|android(?!.*mobile)|kindle|silk", re.IGNORECASE)

# Checked in order; first match wins.
_BROWSERS = (
    ("Edge", re.compile(r"edg/", re.IGNORECASE)),
    ("Opera", re.compile(r"opera|opr/", re.IGNORECASE)),
    ("Chrome", re.compile(r"chrome|crios", re.IGNORECASE)),
    ("Firefox", re.compile(r"firefox|fxios", re.IGNORECASE)),
    ("Safari", re.compile(r"safari", re.IGNORECASE)),
)
_OPERATING_SYSTEMS = (
    ("iOS", re.compile(r"iphone|ipad|ipod", re.IGNORECASE)),
    ("Android", re.compile(r"android", re.IGNORECASE)),
    ("Windows", re.compile(r"windows", re.IGNORECASE)),
    ("macOS", re.compile(r"macintosh|mac os x", re.IGNORECASE)),
    ("Linux", re.compile(r"linux", re.IGNORECASE)),
)

EU_COUNTRIES = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR", "HU", "IE",
    "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI", "ES", "SE",
})


def parse_user_agent(ua: Optional[str]) -> Device:
    if not ua:
        return Device(type="desktop")

    if _MOBILE_RE.search(ua):
        device_type = "mobile"
    elif _TABLET_RE.search(ua):
        device_type = "tablet"
    else:
        device_type = "desktop"

    browser = next((name for name, rx in _BROWSERS if rx.search(ua)), None)
    os_name = next((name for name, rx in _OPERATING_SYSTEMS if rx.search(ua)), None)
    return Device(type=device_type, browser=browser, os=os_name)


def time_of_day(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def get_time_context(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> TimeContext:
    now_utc = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    local = now_utc
    if tz_name:
        try:
            local = now_utc.astimezone(ZoneInfo(tz_name))
        except Exception:
            # Unknown names, directories and path-like values all mean UTC.
            local = now_utc
    # weekday(): Monday == 0 ... Sunday == 6
    return TimeContext(
        local_hour=local.hour,
        time_of_day=time_of_day(local.hour),
        is_weekend=local.weekday() >= 5,
    )


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    value = (value or "").strip()
    return value or None


def _colo_from_ray(ray: Optional[str]) -> Optional[str]:
    # CF-Ray looks like "8a1b2c3d4e5f6a7b-DFW"
    if ray and "-" in ray:
        colo = ray.rsplit("-", 1)[1].strip()
        return colo or None
    return None


def _http_protocol(http_version: Optional[str]) -> str:
    if not http_version:
        return "HTTP/1.1"
    if http_version.upper().startswith("HTTP/"):
        return http_version
    return f"HTTP/{http_version}"


def extract_visitor_context(
    headers: Mapping[str, str],
    http_version: Optional[str] = None,
    now: Optional[datetime] = None,
) -> VisitorContext:
    tz_name = _header(headers, "CF-Timezone")
    country = _header(headers, "CF-IPCountry")
    # Cloudflare reports unknown / Tor visitors as XX / T1.
    if country in {"XX", "T1"}:
        country = None
    return VisitorContext(
        geo=Geo(
            country=country,
            city=_header(headers, "CF-IPCity"),
            continent=_header(headers, "CF-IPContinent"),
            region=_header(headers, "CF-Region"),
            timezone=tz_name,
            is_eu_country=bool(country and country.upper() in EU_COUNTRIES),
        ),
        device=parse_user_agent(_header(headers, "User-Agent")),
        time=get_time_context(tz_name, now),
        network=Network(
            http_protocol=_http_protocol(http_version),
            colo=_colo_from_ray(_header(headers, "CF-Ray")) or "unknown",
        ),
    )


def derive_ui_hints(context: VisitorContext) -> UIHints:
    tod = context.time.time_of_day
    if tod in {"evening", "night"}:
        theme = "dark"
    elif tod == "morning":
        theme = "light"
    else:
        theme = "system"
    return UIHints(suggested_theme=theme, prefer_compact_layout=context.device.type == "mobile")
