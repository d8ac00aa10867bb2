from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from portfolio_api.models import PortfolioContent, VisitorContext

ALLOWED_VISITOR_TAGS = ["recruiter", "developer", "collaborator", "friend"]
MAX_CUSTOM_INTENT_LENGTH = 200
PROFILE_IMAGE = "/assets/profile.png"

TAG_GUIDELINES: Dict[str, str] = {
    "recruiter": (
        "Professional focus. Lead with Hero (include resume CTA) + SkillBadges. Emphasize Timeline (experience). "
        'Show CardGrid with featured projects. Use "hero-focused" or "single-column" layout.'
    ),
    "developer": (
        "Technical focus. Lead with CardGrid showing all projects (columns: 3). Include SkillBadges (detailed style). "
        'Show Timeline briefly. Link to github. Use "two-column" layout.'
    ),
    "collaborator": (
        "Partnership focus. Highlight current/featured projects in CardGrid (columns: 2). Show ContactForm prominently. "
        'Include a TextBlock about collaboration interests. Use "hero-focused" layout.'
    ),
    "friend": (
        "Personal focus. Casual, friendly tone. Lead with Hero. Include TextBlock with bio. "
        'Add ImageGallery for photos. Show hobbies. Use "single-column" layout.'
    ),
}

# Ordered component vocabulary with the props the renderer understands.
COMPONENTS = [
    ("Hero", "{ title: string, subtitle: string, image: string, cta?: { text: string, href: string } }"),
    ("CardGrid", '{ title: string, columns: 2|3|4, items: ["project-id", ...] }'),
    ("SkillBadges", '{ title: string, skills?: ["skill1", ...], style: "compact" | "detailed" }'),
    ("Timeline", '{ title: string, items?: ["experience-id", ...] }'),
    ("ContactForm", "{ title: string, showEmail?: boolean, showLinkedIn?: boolean, showGitHub?: boolean }"),
    ("TextBlock", '{ title: string, content: string, style: "prose" | "highlight" }'),
    ("ImageGallery", '{ title: string, images: ["/path/to/img", ...] }'),
]

CATEGORIZATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "status": {"type": "string", "enum": ["matched", "new_tag", "rejected"]},
        "tagName": {"type": "string"},
        "displayName": {"type": "string"},
        "guidelines": {"type": "string"},
        "confidence": {"type": "number"},
        "reason": {"type": "string"},
    },
    "required": ["status", "tagName", "displayName", "guidelines", "confidence"],
    "additionalProperties": False,
}

LAYOUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "layout": {"type": "string", "enum": ["single-column", "two-column", "hero-focused"]},
        "theme": {
            "type": "object",
            "properties": {"accent": {"type": "string"}},
            "required": ["accent"],
            "additionalProperties": False,
        },
        "sections": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"type": {"type": "string"}, "props": {"type": "object"}},
                "required": ["type", "props"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["layout", "theme", "sections"],
    "additionalProperties": False,
}

_env = Environment(
    loader=FileSystemLoader(os.path.join(os.path.dirname(__file__), "templates")),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)

_UNSAFE_INTENT_CHARS = re.compile(r"[<>{}\[\]]")


def build_categorization_prompt() -> str:
    return _env.get_template("categorization_prompt.j2").render(guidelines=list(TAG_GUIDELINES.items()))


def build_categorization_user_prompt(custom_intent: str) -> str:
    cleaned = _UNSAFE_INTENT_CHARS.sub("", custom_intent or "").strip()[:MAX_CUSTOM_INTENT_LENGTH]
    return f'Categorize this visitor intent: "{cleaned}"'


def _guideline_lines(custom_guidelines: Optional[Dict[str, str]]) -> List[tuple]:
    lines = [(("FRIEND/FAMILY" if tag == "friend" else tag.upper()), text) for tag, text in TAG_GUIDELINES.items()]
    if custom_guidelines and custom_guidelines.get("tagName"):
        lines.append((custom_guidelines["tagName"].upper(), custom_guidelines.get("guidelines", "")))
    return lines


def build_system_prompt(
    portfolio: PortfolioContent,
    custom_guidelines: Optional[Dict[str, str]] = None,
    visitor_context: Optional[VisitorContext] = None,
    data_summaries: Optional[Dict[str, Any]] = None,
) -> str:
    """Render the layout system prompt.

    ``custom_guidelines`` is ``{"tagName", "guidelines"}`` for tags minted by
    categorization. ``data_summaries`` may hold ``github``/``weather``
    summaries; unavailable ones are left out.
    """
    summaries = data_summaries or {}
    github = summaries.get("github")
    weather = summaries.get("weather")
    return _env.get_template("system_prompt.j2").render(
        components=COMPONENTS,
        personal=portfolio.personal,
        profile_image=PROFILE_IMAGE,
        projects=portfolio.projects,
        experience=portfolio.experience,
        skills_json=json.dumps(portfolio.skills, ensure_ascii=False),
        education=portfolio.education,
        hobbies_json=json.dumps(portfolio.hobbies or [], ensure_ascii=False),
        photos=portfolio.photos or [],
        visitor=visitor_context,
        github=github if github and github.get("available") else None,
        weather=weather if weather and weather.get("available") else None,
        guidelines=_guideline_lines(custom_guidelines),
    )


def build_user_prompt(
    visitor_tag: str,
    custom_intent: Optional[str] = None,
    visitor_context: Optional[VisitorContext] = None,
) -> str:
    tag = (visitor_tag or "").lower()
    shown = tag.upper() if tag in ALLOWED_VISITOR_TAGS else "FRIEND"
    prompt = f"Visitor type: {shown}"

    if custom_intent:
        prompt += f"\nAdditional context: {custom_intent[:MAX_CUSTOM_INTENT_LENGTH]}"

    if visitor_context is not None:
        hints = []
        if visitor_context.device.type == "mobile":
            hints.append("on a mobile device (prefer a compact layout)")
        if visitor_context.time.time_of_day in {"evening", "night"}:
            hints.append("browsing in the evening hours")
        if visitor_context.time.is_weekend:
            hints.append("visiting on the weekend")
        if hints:
            prompt += "\nContext: Visitor is " + "; ".join(hints) + "."

    prompt += "\n\nGenerate a personalized layout for this visitor."
    return prompt
