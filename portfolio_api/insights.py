"""Small live-data summaries (GitHub activity, weather) fed to the layout prompt.

Each fetch is a single ``requests.get`` with a short timeout and a cached
result. Failures become "unavailable" summaries; nothing here is retried.
"""
from __future__ import annotations

import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from portfolio_api.env import Env
from portfolio_api.errors import UpstreamError
from portfolio_api.models import PortfolioContent, VisitorContext

log = logging.getLogger(__name__)

GITHUB_EVENTS_URL = "https://api.github.com/users/{username}/events?per_page=100"
GEOCODE_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
USER_AGENT = "Portfolio-Site"
HTTP_TIMEOUT = 5.0

GITHUB_CACHE_TTL = 3600
WEATHER_CACHE_TTL = 3600
GEOCODE_CACHE_TTL = 31536000

DEFAULT_LOCATION = {"name": "Shanghai", "lat": 31.23, "lon": 121.47}

TRACKED_EVENT_TYPES = frozenset({
    "PushEvent",
    "PullRequestEvent",
    "CreateEvent",
    "IssuesEvent",
    "IssueCommentEvent",
    "PullRequestReviewEvent",
    "PullRequestReviewCommentEvent",
    "CommitCommentEvent",
    "ReleaseEvent",
})

_GITHUB_USER_RE = re.compile(r"github\.com/([^/]+)")


def _cache_get(env: Env, key: str) -> Optional[Any]:
    if env.store is None:
        return None
    try:
        return env.store.get_json(key)
    except Exception as exc:
        log.warning("insights.cache_error key=%s: %s", key, exc)
        return None


def _cache_put(env: Env, key: str, value: Any, ttl: int) -> None:
    if env.store is None:
        return
    try:
        env.store.put_json(key, value, ttl=ttl)
    except Exception as exc:
        log.warning("insights.cache_error key=%s: %s", key, exc)


def _get_json(url: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
    hdrs = {"User-Agent": USER_AGENT}
    hdrs.update(headers or {})
    try:
        resp = requests.get(url, params=params, headers=hdrs, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        raise UpstreamError(f"request to {url} failed: {exc}") from exc
    if not 200 <= resp.status_code < 300:
        raise UpstreamError(f"{url} returned {resp.status_code}")
    try:
        return resp.json()
    except ValueError as exc:
        raise UpstreamError(f"{url} returned a non-JSON body") from exc


# --- GitHub ---

def github_username(portfolio: PortfolioContent, default: str) -> str:
    match = _GITHUB_USER_RE.search(portfolio.personal.contact.github or "")
    return match.group(1) if match else default


def activity_count(event: Dict[str, Any]) -> int:
    if event.get("type") not in TRACKED_EVENT_TYPES:
        return 0
    if event.get("type") == "PushEvent":
        payload = event.get("payload")
        size = payload.get("size") if isinstance(payload, dict) else None
        if isinstance(size, int) and size > 0:
            return size
    return 1


def aggregate_events(events: List[Dict[str, Any]], now: datetime) -> Dict[str, Any]:
    daily: Dict[str, int] = {}
    total = 0
    for event in events:
        count = activity_count(event)
        if count <= 0:
            continue
        day = str(event.get("created_at") or "").split("T")[0]
        if not day:
            continue
        daily[day] = daily.get(day, 0) + count
        total += count

    contributions = [{"date": d, "count": c} for d, c in sorted(daily.items())]
    cutoff = now - timedelta(days=30)
    recent = 0
    for c in contributions:
        try:
            day = datetime.strptime(c["date"], "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        if day >= cutoff:
            recent += c["count"]
    return {"contributions": contributions, "totalCommits": total, "recentActivity": recent}


def fetch_github_activity(username: str, env: Env) -> Optional[Dict[str, Any]]:
    """Daily activity counts for ``username``; None when GitHub cannot be reached."""
    key = f"github:activity:{username}"
    cached = _cache_get(env, key)
    if cached is not None:
        return cached
    try:
        events = _get_json(
            GITHUB_EVENTS_URL.format(username=username),
            headers={"Accept": "application/vnd.github.v3+json"},
        )
    except UpstreamError as exc:
        log.warning("insights.github_error user=%s: %s", username, exc)
        return None
    if not isinstance(events, list):
        log.warning("insights.github_error user=%s: unexpected payload", username)
        return None

    now = datetime.fromtimestamp(env.clock() / 1000, tz=timezone.utc)
    result = aggregate_events([e for e in events if isinstance(e, dict)], now)
    log.info(
        "insights.github user=%s days=%d total=%d recent=%d",
        username, len(result["contributions"]), result["totalCommits"], result["recentActivity"],
    )
    _cache_put(env, key, result, GITHUB_CACHE_TTL)
    return result


def summarize_activity(data: Optional[Dict[str, Any]], username: str) -> Dict[str, Any]:
    contributions = (data or {}).get("contributions") or []
    if not contributions:
        return {"available": False, "username": username, "totalCommits": 0, "recentActivity": 0}
    ordered = sorted(contributions, key=lambda c: c["date"])
    weeks = max(1, math.ceil(len(ordered) / 7))
    return {
        "available": True,
        "username": username,
        "dateRange": {"start": ordered[0]["date"], "end": ordered[-1]["date"]},
        "totalCommits": data["totalCommits"],
        "recentActivity": data["recentActivity"],
        "samplePoints": ordered[-5:],
        "avgCommitsPerWeek": round(data["totalCommits"] / weeks),
    }


def fetch_github_summary(username: str, env: Env) -> Dict[str, Any]:
    try:
        return summarize_activity(fetch_github_activity(username, env), username)
    except Exception as exc:
        log.warning("insights.github_summary_error user=%s: %r", username, exc)
        return summarize_activity(None, username)


# --- Geocoding and weather ---

def geocode_city(city: str, env: Env) -> Optional[Dict[str, Any]]:
    """Resolve a city name to coordinates.

    Returns None when the city is unknown and raises UpstreamError when the
    geocoding service fails.
    """
    name = city.strip().lower()
    key = f"geocode:{name}"
    cached = _cache_get(env, key)
    if cached is not None:
        return cached

    data = _get_json(GEOCODE_URL, params={"name": city.strip(), "count": 1, "language": "en"})
    results = data.get("results") if isinstance(data, dict) else None
    if not results:
        return None
    first = results[0] if isinstance(results, list) else None
    if not isinstance(first, dict):
        raise UpstreamError(f"unexpected geocoding payload for {city!r}")
    result = {
        "lat": first.get("latitude"),
        "lon": first.get("longitude"),
        "name": first.get("name"),
        "country": first.get("country"),
        "timezone": first.get("timezone"),
    }
    _cache_put(env, key, result, GEOCODE_CACHE_TTL)
    return result


def visitor_location(context: VisitorContext, env: Env) -> Dict[str, Any]:
    if context.geo.city:
        try:
            coords = geocode_city(context.geo.city, env)
        except UpstreamError as exc:
            log.warning("insights.geocode_error city=%s: %s", context.geo.city, exc)
            coords = None
        if coords and coords.get("lat") is not None and coords.get("lon") is not None:
            return {"name": coords["name"], "lat": coords["lat"], "lon": coords["lon"]}
    return dict(DEFAULT_LOCATION)


def fetch_forecast(lat: float, lon: float) -> Dict[str, Any]:
    """7-day daily min/max temperatures. Raises UpstreamError on failure."""
    data = _get_json(
        FORECAST_URL,
        params={
            "latitude": lat,
            "longitude": lon,
            "daily": "temperature_2m_max,temperature_2m_min",
            "forecast_days": 7,
            "timezone": "auto",
        },
    )
    try:
        daily = data["daily"]
        days = [
            {"date": date, "minTemp": daily["temperature_2m_min"][i], "maxTemp": daily["temperature_2m_max"][i]}
            for i, date in enumerate(daily["time"])
        ]
        units = data.get("daily_units") or {}
        unit = str(units.get("temperature_2m_max") or "°C").replace("°", "")
    except (AttributeError, KeyError, IndexError, TypeError) as exc:
        raise UpstreamError(f"unexpected forecast payload: {exc!r}") from exc
    return {"data": days, "unit": unit}


def weather_cache_key(lat: float, lon: float) -> str:
    return f"weather:minmax:{lat:.2f}:{lon:.2f}"


def fetch_weather(lat: float, lon: float, name: Optional[str], env: Env) -> Dict[str, Any]:
    """Forecast payload for the weather endpoint; empty data when upstream fails."""
    key = weather_cache_key(lat, lon)
    cached = _cache_get(env, key)
    if cached is not None:
        return cached
    location = {"lat": lat, "lon": lon, "name": name}
    try:
        forecast = fetch_forecast(lat, lon)
    except UpstreamError as exc:
        log.warning("insights.weather_error lat=%s lon=%s: %s", lat, lon, exc)
        return {"data": [], "unit": "C", "location": location}
    result = {**forecast, "location": location}
    _cache_put(env, key, result, WEATHER_CACHE_TTL)
    return result


def fetch_weather_summary(context: VisitorContext, env: Env) -> Dict[str, Any]:
    try:
        return _weather_summary(context, env)
    except Exception as exc:
        log.warning("insights.weather_summary_error: %r", exc)
        return {"available": False, "location": dict(DEFAULT_LOCATION), "weeklyForecast": [], "unit": "C"}


def _weather_summary(context: VisitorContext, env: Env) -> Dict[str, Any]:
    location = visitor_location(context, env)
    # Kept apart from the endpoint payload, which has a different shape.
    key = weather_cache_key(location["lat"], location["lon"]) + ":summary"
    cached = _cache_get(env, key)
    if cached is not None:
        return cached
    try:
        forecast = fetch_forecast(location["lat"], location["lon"])
    except UpstreamError as exc:
        log.warning("insights.weather_error location=%s: %s", location["name"], exc)
        return {"available": False, "location": location, "weeklyForecast": [], "unit": "C"}
    summary = {
        "available": True,
        "location": location,
        "weeklyForecast": forecast["data"],
        "unit": forecast["unit"],
    }
    _cache_put(env, key, summary, WEATHER_CACHE_TTL)
    return summary


def prefetch_summaries(portfolio: PortfolioContent, context: VisitorContext, env: Env) -> Dict[str, Any]:
    """Fetch the GitHub and weather summaries side by side."""
    username = github_username(portfolio, env.settings.default_github_user)
    with ThreadPoolExecutor(max_workers=2) as pool:
        github = pool.submit(fetch_github_summary, username, env)
        weather = pool.submit(fetch_weather_summary, context, env)
        return {"github": github.result(), "weather": weather.result()}
