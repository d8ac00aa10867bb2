from datetime import datetime, timezone

import pytest

from portfolio_api.visitor import (
    derive_ui_hints,
    extract_visitor_context,
    get_time_context,
    parse_user_agent,
    time_of_day,
)

IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Version/17.0 Mobile/15E148 Safari/604.1"
IPAD = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Version/17.0 Safari/604.1"
ANDROID_TABLET = "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
ANDROID_PHONE = "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36"
EDGE_WIN = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36 Edg/120.0"
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
SAFARI_MAC = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 Version/17.0 Safari/605.1.15"

# Saturday 2024-06-15 14:30 UTC
SATURDAY = datetime(2024, 6, 15, 14, 30, tzinfo=timezone.utc)
# Wednesday 2024-06-12 03:00 UTC
WEDNESDAY = datetime(2024, 6, 12, 3, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "ua,device,browser,os_name",
    [
        (IPHONE, "mobile", "Safari", "iOS"),
        (ANDROID_PHONE, "mobile", "Chrome", "Android"),
        (IPAD, "tablet", "Safari", "iOS"),
        (ANDROID_TABLET, "tablet", "Chrome", "Android"),
        (EDGE_WIN, "desktop", "Edge", "Windows"),
        (FIREFOX_LINUX, "desktop", "Firefox", "Linux"),
        (SAFARI_MAC, "desktop", "Safari", "macOS"),
    ],
)
def test_parse_user_agent(ua, device, browser, os_name):
    d = parse_user_agent(ua)
    assert (d.type, d.browser, d.os) == (device, browser, os_name)


def test_missing_user_agent_is_desktop():
    d = parse_user_agent(None)
    assert d.type == "desktop"
    assert d.browser is None and d.os is None


@pytest.mark.parametrize(
    "hour,bucket",
    [(0, "night"), (4, "night"), (5, "morning"), (11, "morning"), (12, "afternoon"),
     (16, "afternoon"), (17, "evening"), (20, "evening"), (21, "night"), (23, "night")],
)
def test_time_of_day_buckets(hour, bucket):
    assert time_of_day(hour) == bucket


def test_time_context_uses_timezone():
    t = get_time_context("Asia/Tokyo", now=SATURDAY)
    # 14:30 UTC is 23:30 in Tokyo
    assert t.local_hour == 23
    assert t.time_of_day == "night"
    assert t.is_weekend is True


def test_time_context_falls_back_to_utc():
    for tz in (None, "", "Not/AZone"):
        t = get_time_context(tz, now=WEDNESDAY)
        assert t.local_hour == 3
        assert t.is_weekend is False


@pytest.mark.parametrize("tz", ["America", "Europe", "../../etc/passwd", "/etc/passwd", "Asia/"])
def test_time_context_ignores_directory_and_path_names(tz):
    t = get_time_context(tz, now=WEDNESDAY)
    assert t.local_hour == 3
    assert t.time_of_day == "night"


def test_extract_survives_zone_directory_header():
    ctx = extract_visitor_context({"CF-Timezone": "America"}, now=SATURDAY)
    assert ctx.geo.timezone == "America"
    assert ctx.time.local_hour == 14


def test_extract_defaults():
    ctx = extract_visitor_context({}, now=WEDNESDAY)
    assert ctx.device.type == "desktop"
    assert ctx.network.colo == "unknown"
    assert ctx.network.http_protocol == "HTTP/1.1"
    assert ctx.geo.country is None and ctx.geo.city is None
    assert ctx.geo.is_eu_country is False
    assert ctx.time.local_hour == 3


def test_extract_from_edge_headers():
    headers = {
        "CF-IPCountry": "DE",
        "CF-IPCity": "Berlin",
        "CF-IPContinent": "EU",
        "CF-Timezone": "Europe/Berlin",
        "CF-Ray": "8a1b2c3d4e5f6a7b-FRA",
        "User-Agent": IPHONE,
    }
    ctx = extract_visitor_context(headers, http_version="2", now=SATURDAY)
    assert ctx.geo.country == "DE"
    assert ctx.geo.city == "Berlin"
    assert ctx.geo.is_eu_country is True
    assert ctx.network.colo == "FRA"
    assert ctx.network.http_protocol == "HTTP/2"
    assert ctx.device.type == "mobile"
    assert ctx.time.local_hour == 16


def test_unknown_country_code_is_dropped():
    ctx = extract_visitor_context({"CF-IPCountry": "XX"}, now=WEDNESDAY)
    assert ctx.geo.country is None


def test_summary_shape():
    ctx = extract_visitor_context({"CF-IPCountry": "US", "CF-IPCity": "Austin"}, now=WEDNESDAY)
    assert ctx.summary() == {
        "geo": {"country": "US", "city": "Austin"},
        "device": {"type": "desktop"},
        "time": {"timeOfDay": "night"},
    }


@pytest.mark.parametrize(
    "tz,now,ua,theme,compact",
    [
        (None, datetime(2024, 6, 12, 19, 0, tzinfo=timezone.utc), IPHONE, "dark", True),
        (None, datetime(2024, 6, 12, 8, 0, tzinfo=timezone.utc), EDGE_WIN, "light", False),
        (None, datetime(2024, 6, 12, 13, 0, tzinfo=timezone.utc), IPAD, "system", False),
    ],
)
def test_ui_hints(tz, now, ua, theme, compact):
    ctx = extract_visitor_context({"User-Agent": ua}, now=now)
    hints = derive_ui_hints(ctx)
    assert hints.suggested_theme == theme
    assert hints.prefer_compact_layout is compact
