import threading
import time
import types

import requests

from portfolio_api import links
from portfolio_api.links import check_and_sanitize, extract_links, sanitize_layout, validate_link, validate_links
from portfolio_api.models import GeneratedLayout


class FakeResp:
    def __init__(self, status_code):
        self.status_code = status_code


def _layout():
    return GeneratedLayout.model_validate({
        "layout": "hero-focused",
        "theme": {"accent": "green"},
        "sections": [
            {"type": "Hero", "props": {"title": "A", "subtitle": "a", "cta": {"text": "Good", "href": "https://ok.test/"}}},
            {"type": "Hero", "props": {"title": "B", "subtitle": "b", "cta": {"text": "Bad", "href": "https://dead.test/"}}},
            {"type": "CardGrid", "props": {"title": "P", "columns": 2, "items": ["p1"],
                                           "cta": {"href": "https://ignored.test/"}}},
            {"type": "Hero", "props": {"title": "C"}},
        ],
    })


def _patch_head(monkeypatch, statuses):
    calls = []

    def fake_head(url, timeout=None, allow_redirects=False):
        calls.append((url, timeout))
        status = statuses[url]
        if isinstance(status, Exception):
            raise status
        return FakeResp(status)

    monkeypatch.setattr(links, "requests", types.SimpleNamespace(head=fake_head, RequestException=requests.RequestException))
    return calls


def test_extract_links_only_reads_hero_ctas():
    assert extract_links(_layout()) == ["https://ok.test/", "https://dead.test/"]


def test_trusted_links_skip_network(monkeypatch):
    calls = _patch_head(monkeypatch, {})
    assert validate_link("mailto:me@example.com") is True
    assert validate_link("/resume.pdf") is True
    assert calls == []


def test_validate_link_status_and_errors(monkeypatch):
    calls = _patch_head(monkeypatch, {
        "https://ok.test/": 200,
        "https://gone.test/": 404,
        "https://slow.test/": requests.Timeout("timed out"),
    })
    assert validate_link("https://ok.test/") is True
    assert validate_link("https://gone.test/") is False
    assert validate_link("https://slow.test/") is False
    assert all(timeout == 3.0 for _, timeout in calls)


def test_validate_links_checks_each_url_once(monkeypatch):
    calls = _patch_head(monkeypatch, {"https://ok.test/": 204, "https://dead.test/": 500})
    result = validate_links(["https://ok.test/", "https://dead.test/", "https://ok.test/"])
    assert result == {"https://ok.test/": True, "https://dead.test/": False}
    assert sorted(url for url, _ in calls) == ["https://dead.test/", "https://ok.test/"]


def test_sanitize_removes_only_invalid_cta():
    original = _layout()
    cleaned = sanitize_layout(original, {"https://dead.test/"})
    assert cleaned.sections[0].props["cta"]["href"] == "https://ok.test/"
    assert "cta" not in cleaned.sections[1].props
    assert cleaned.sections[1].props["title"] == "B"
    assert cleaned.sections[1].props["subtitle"] == "b"
    assert cleaned.sections[2] == original.sections[2]
    # The input layout is left alone.
    assert "cta" in original.sections[1].props


def test_check_and_sanitize(monkeypatch):
    _patch_head(monkeypatch, {"https://ok.test/": 200, "https://dead.test/": requests.ConnectionError("dns")})
    cleaned = check_and_sanitize(_layout())
    assert "cta" in cleaned.sections[0].props
    assert "cta" not in cleaned.sections[1].props


def test_check_and_sanitize_without_links(monkeypatch):
    calls = _patch_head(monkeypatch, {})
    layout = GeneratedLayout.model_validate({"layout": "single-column", "sections": [{"type": "TextBlock", "props": {}}]})
    assert check_and_sanitize(layout) is layout
    assert calls == []


def test_validate_links_enforces_overall_deadline(monkeypatch):
    release = threading.Event()

    def fake_head(url, timeout=None, allow_redirects=False):
        if url == "https://stuck.test/":
            # Simulates a redirect chain that keeps resetting the per-step timeout.
            release.wait(5)
        return FakeResp(200)

    monkeypatch.setattr(links, "requests", types.SimpleNamespace(head=fake_head, RequestException=requests.RequestException))
    started = time.monotonic()
    try:
        result = validate_links(["https://ok.test/", "https://stuck.test/"], timeout=0.2)
    finally:
        release.set()
    assert time.monotonic() - started < 2
    assert result == {"https://ok.test/": True, "https://stuck.test/": False}
