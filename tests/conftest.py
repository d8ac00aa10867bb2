import copy

import pytest

from portfolio_api.config import Settings
from portfolio_api.env import Env
from portfolio_api.llm_client import FailureKind, Outcome
from portfolio_api.models import PortfolioContent
from portfolio_api.store import MemoryStore

NOW_MS = 1_700_000_000_000

PORTFOLIO = {
    "personal": {
        "name": "Test User",
        "title": "Software Engineer",
        "bio": "Building amazing software",
        "location": "San Francisco, CA",
        "resumeUrl": "https://example.com/resume.pdf",
        "contact": {
            "email": "test@example.com",
            "linkedin": "https://linkedin.com/in/test",
            "github": "https://github.com/test",
        },
    },
    "projects": [
        {
            "id": f"project-{i}",
            "title": f"Project {i}",
            "description": f"Description {i}",
            "technologies": ["Python"],
            "tags": ["web", "backend"],
            "featured": i == 1,
            "links": {"github": f"https://github.com/test/project-{i}"},
        }
        for i in range(1, 6)
    ],
    "experience": [
        {
            "id": "exp-1",
            "role": "Senior Developer",
            "company": "Test Corp",
            "period": "2020-Present",
            "highlights": ["Led team"],
        }
    ],
    "skills": ["Python", "FastAPI", "Redis"],
    "education": [
        {"id": "edu-1", "degree": "BS Computer Science", "institution": "Test University", "period": "2016-2020"}
    ],
    "hobbies": ["Coding", "Reading"],
    "photos": [{"path": "/photos/photo1.jpg", "description": "Photo 1"}],
}


class FakeLLM:
    """Stands in for LLMClient; replays queued outcomes and records calls."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def complete_json(self, system, user, **kwargs):
        self.calls.append({"system": system, "user": user, **kwargs})
        if not self.outcomes:
            return Outcome.fail(FailureKind.TRANSPORT, "no outcome queued")
        return self.outcomes.pop(0)


class Clock:
    def __init__(self, now=NOW_MS):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def portfolio_dict():
    return copy.deepcopy(PORTFOLIO)


@pytest.fixture
def portfolio(portfolio_dict):
    return PortfolioContent.model_validate(portfolio_dict)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=lambda: clock() / 1000)


@pytest.fixture
def env(store, clock):
    return Env(settings=Settings(assets_dir="does-not-exist"), store=store, llm=None, clock=clock)


@pytest.fixture
def no_prefetch(monkeypatch):
    """Keep layout generation off the network."""
    from portfolio_api import generator

    summaries = {
        "github": {"available": False, "username": "test", "totalCommits": 0, "recentActivity": 0},
        "weather": {"available": False, "location": {"name": "Shanghai", "lat": 31.23, "lon": 121.47},
                    "weeklyForecast": [], "unit": "C"},
    }
    monkeypatch.setattr(generator, "prefetch_summaries", lambda portfolio, context, env: summaries)
    return summaries
