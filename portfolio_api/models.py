from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LayoutKind = Literal["single-column", "two-column", "hero-focused"]
CategorizationStatus = Literal["matched", "new_tag", "rejected"]
DeviceType = Literal["mobile", "tablet", "desktop"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
SuggestedTheme = Literal["light", "dark", "system"]


class CamelModel(BaseModel):
    """Wire models speak camelCase JSON; Python code uses snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Portfolio content (supplied by the frontend) ---

class Contact(CamelModel):
    email: str = ""
    linkedin: str = ""
    github: str = ""


class Personal(CamelModel):
    name: str
    title: str
    bio: str = ""
    location: Optional[str] = None
    resume_url: Optional[str] = None
    contact: Contact = Field(default_factory=Contact)


class Project(CamelModel):
    id: str
    title: str = ""
    description: str = ""
    technologies: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    featured: bool = False
    image: Optional[str] = None
    links: Dict[str, str] = Field(default_factory=dict)


class Experience(CamelModel):
    id: str
    role: str = ""
    company: str = ""
    period: str = ""
    description: Optional[str] = None
    highlights: List[str] = Field(default_factory=list)


class Education(CamelModel):
    id: str
    degree: str = ""
    institution: str = ""
    period: str = ""


class Photo(CamelModel):
    path: str
    description: Optional[str] = None


class PortfolioContent(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    personal: Personal
    projects: List[Project] = Field(default_factory=list)
    experience: List[Experience] = Field(default_factory=list)
    # Either a flat list or a mapping of category -> list.
    skills: Any = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    hobbies: Optional[List[str]] = None
    photos: Optional[List[Photo]] = None


# --- Requests / responses ---

class GenerateRequest(CamelModel):
    # Optional at the schema level so missing fields surface as a 400, not a 422.
    visitor_tag: Optional[str] = None
    custom_intent: Optional[str] = None
    portfolio_content: Optional[PortfolioContent] = None


class FeedbackRequest(CamelModel):
    feedback_type: Optional[str] = None
    audience_type: Optional[str] = None
    cache_key: Optional[str] = None
    session_id: Optional[str] = None


class FeedbackResponse(CamelModel):
    success: bool
    message: str
    regenerate: Optional[bool] = None
    rate_limited: Optional[bool] = None
    retry_after: Optional[int] = None


# --- Generated layout ---

class Theme(CamelModel):
    accent: str = "blue"


class Section(CamelModel):
    """One rendered component. ``props`` is an open bag; its keys follow the prompt's component schema."""

    type: str
    props: Dict[str, Any] = Field(default_factory=dict)


class GeneratedLayout(CamelModel):
    layout: LayoutKind
    theme: Theme = Field(default_factory=Theme)
    sections: List[Section] = Field(default_factory=list)


# --- Categorization ---

class CategorizationResult(CamelModel):
    status: CategorizationStatus
    tag_name: str
    display_name: str = ""
    guidelines: str = ""
    confidence: float = 0.0
    reason: Optional[str] = None


class CustomTag(CamelModel):
    tag_name: str
    display_name: str
    guidelines: str
    is_custom: bool = True
    mapped_from: str
    created_at: str


# --- Visitor context ---

class Geo(CamelModel):
    country: Optional[str] = None
    city: Optional[str] = None
    continent: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None
    is_eu_country: bool = Field(default=False, alias="isEUCountry")


class Device(CamelModel):
    type: DeviceType = "desktop"
    browser: Optional[str] = None
    os: Optional[str] = None


class TimeContext(CamelModel):
    local_hour: int = Field(ge=0, le=23)
    time_of_day: TimeOfDay
    is_weekend: bool


class Network(CamelModel):
    http_protocol: str = "HTTP/1.1"
    colo: str = "unknown"


class VisitorContext(CamelModel):
    geo: Geo = Field(default_factory=Geo)
    device: Device = Field(default_factory=Device)
    time: TimeContext
    network: Network = Field(default_factory=Network)

    def summary(self) -> Dict[str, Any]:
        """The subset echoed back to the client as ``_visitorContext``."""
        return {
            "geo": {"country": self.geo.country, "city": self.geo.city},
            "device": {"type": self.device.type},
            "time": {"timeOfDay": self.time.time_of_day},
        }


class UIHints(CamelModel):
    suggested_theme: SuggestedTheme
    prefer_compact_layout: bool


# --- Rate limiting ---

class RateLimitEntry(CamelModel):
    last_dislike: int
    count: int = 1


class GenerateRateLimitEntry(CamelModel):
    window_start: int
    count: int = 0
