"""Deterministic layouts used whenever the model is unavailable or misbehaves."""
from __future__ import annotations

from typing import Any, Dict, List

from portfolio_api.models import GeneratedLayout, PortfolioContent, Section, Theme
from portfolio_api.prompts import PROFILE_IMAGE


def _hero(portfolio: PortfolioContent) -> Dict[str, Any]:
    return {
        "title": portfolio.personal.name,
        "subtitle": portfolio.personal.title,
        "image": PROFILE_IMAGE,
    }


def _recruiter(portfolio: PortfolioContent, hero: Dict[str, Any], ids: List[str]):
    if portfolio.personal.resume_url:
        hero["cta"] = {"text": "View Resume", "href": portfolio.personal.resume_url}
    return "hero-focused", [
        Section(type="SkillBadges", props={"title": "Technical Skills", "style": "detailed"}),
        Section(type="Timeline", props={"title": "Experience"}),
        Section(type="CardGrid", props={"title": "Featured Projects", "columns": 2, "items": ids[:4]}),
    ]


def _developer(portfolio: PortfolioContent, hero: Dict[str, Any], ids: List[str]):
    return "two-column", [
        Section(type="CardGrid", props={"title": "Projects", "columns": 3, "items": ids}),
        Section(type="SkillBadges", props={"title": "Tech Stack", "style": "detailed"}),
        Section(type="ContactForm", props={"title": "Connect", "showGitHub": True, "showEmail": True}),
    ]


def _collaborator(portfolio: PortfolioContent, hero: Dict[str, Any], ids: List[str]):
    return "hero-focused", [
        Section(type="TextBlock", props={"title": "About Me", "content": portfolio.personal.bio, "style": "prose"}),
        Section(type="CardGrid", props={"title": "Current Projects", "columns": 2, "items": ids[:2]}),
        Section(
            type="ContactForm",
            props={"title": "Let's Collaborate", "showEmail": True, "showLinkedIn": True, "showGitHub": True},
        ),
    ]


def _friend(portfolio: PortfolioContent, hero: Dict[str, Any], ids: List[str]):
    images = [p.path for p in portfolio.photos or []]
    return "single-column", [
        Section(type="TextBlock", props={"title": "Hey there!", "content": portfolio.personal.bio, "style": "prose"}),
        Section(type="ImageGallery", props={"title": "Photos", "images": images}),
        Section(type="ContactForm", props={"title": "Get in Touch", "showEmail": True}),
    ]


_BRANCHES = {
    "recruiter": _recruiter,
    "developer": _developer,
    "collaborator": _collaborator,
    "friend": _friend,
}


def get_default_layout(visitor_tag: str, portfolio: PortfolioContent) -> GeneratedLayout:
    """Hero first, then a fixed set of sections per tag. Unknown tags get the friend layout."""
    hero = _hero(portfolio)
    ids = [p.id for p in portfolio.projects]
    branch = _BRANCHES.get(visitor_tag, _friend)
    kind, rest = branch(portfolio, hero, ids)
    return GeneratedLayout(
        layout=kind,
        theme=Theme(accent="blue"),
        sections=[Section(type="Hero", props=hero), *rest],
    )
