"""Probe outbound links in a generated layout and drop the dead ones.

Only Hero sections carry links (``props.cta.href``). Each link is checked
once with a HEAD request; there are no retries.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Set

import requests

from portfolio_api.models import GeneratedLayout

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0


def _cta_href(section) -> str:
    if section.type != "Hero":
        return ""
    cta = section.props.get("cta")
    if not isinstance(cta, dict):
        return ""
    href = cta.get("href")
    return href if isinstance(href, str) else ""


def extract_links(layout: GeneratedLayout) -> List[str]:
    return [href for href in (_cta_href(s) for s in layout.sections) if href]


def validate_link(url: str, timeout: float = DEFAULT_TIMEOUT) -> bool:
    if url.startswith("mailto:") or url.startswith("/"):
        return True
    try:
        resp = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        log.info("links.unreachable url=%s: %s", url, exc)
        return False
    return 200 <= resp.status_code < 300


def validate_links(urls: Iterable[str], timeout: float = DEFAULT_TIMEOUT) -> Dict[str, bool]:
    """Check every distinct URL concurrently.

    ``timeout`` is also the overall deadline: a check still running when it
    passes counts as a dead link. Redirect chains and slow bodies cannot
    stretch the wait past it.
    """
    unique = list(dict.fromkeys(urls))
    if not unique:
        return {}
    pool = ThreadPoolExecutor(max_workers=len(unique))
    try:
        futures = {url: pool.submit(validate_link, url, timeout) for url in unique}
        done, pending = wait(futures.values(), timeout=timeout)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
    if pending:
        log.info("links.deadline_exceeded count=%d", len(pending))
    return {url: fut in done and fut.result() for url, fut in futures.items()}


def sanitize_layout(layout: GeneratedLayout, invalid_links: Set[str]) -> GeneratedLayout:
    """Return a copy of ``layout`` with dead Hero CTAs removed."""
    if not invalid_links:
        return layout
    sections = []
    for section in layout.sections:
        if _cta_href(section) in invalid_links:
            props = {k: v for k, v in section.props.items() if k != "cta"}
            section = section.model_copy(update={"props": props})
        sections.append(section)
    return layout.model_copy(update={"sections": sections})


def check_and_sanitize(layout: GeneratedLayout, timeout: float = DEFAULT_TIMEOUT) -> GeneratedLayout:
    links = extract_links(layout)
    if not links:
        return layout
    checked = validate_links(links, timeout)
    invalid = {url for url, ok in checked.items() if not ok}
    if invalid:
        log.warning("links.removed count=%d urls=%s", len(invalid), sorted(invalid))
    return sanitize_layout(layout, invalid)
