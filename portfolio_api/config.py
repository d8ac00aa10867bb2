from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

OPENROUTER_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "qwen/qwen3-coder-flash"


def load_dotenv(path: str = ".env") -> None:
    """Copy KEY=VALUE pairs from a .env file into os.environ.

    Values already present in the environment win. Skipped under pytest so
    tests never pick up a developer's credentials.
    """
    if os.getenv("PYTEST_CURRENT_TEST"):
        return
    env_path = Path(path)
    if not env_path.exists():
        return
    try:
        lines = env_path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for line in lines:
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        key, val = s.split("=", 1)
        key = key.strip()
        val = val.strip()
        if len(val) >= 2 and val[0] == val[-1] and val[0] in {'"', "'"}:
            val = val[1:-1]
        if key and key not in os.environ:
            os.environ[key] = val


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(env.get(name, "") or default)
    except ValueError:
        return default


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(env.get(name, "") or default)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    llm_api_key: str = ""
    llm_endpoint: str = OPENROUTER_ENDPOINT
    llm_model: str = DEFAULT_MODEL
    llm_timeout_secs: float = 30.0
    redis_url: str = ""
    redis_timeout: float = 0.35
    intent_cache_ttl: int = 86400 * 7
    custom_tag_ttl: int = 86400 * 30
    layout_cache_ttl: int = 86400
    link_check_timeout: float = 3.0
    assets_dir: str = "public/assets"
    log_level: str = "INFO"
    default_github_user: str = "uetuluk"

    @property
    def ai_configured(self) -> bool:
        return bool(self.llm_api_key and self.llm_endpoint)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    if env is None:
        load_dotenv()
        env = os.environ
    api_key = (env.get("LLM_API_KEY") or env.get("OPENROUTER_API_KEY") or "").strip()
    return Settings(
        llm_api_key=api_key,
        llm_endpoint=(env.get("LLM_ENDPOINT") or OPENROUTER_ENDPOINT).strip(),
        llm_model=(env.get("LLM_MODEL") or DEFAULT_MODEL).strip(),
        llm_timeout_secs=_float(env, "LLM_TIMEOUT_SECS", 30.0),
        redis_url=(env.get("REDIS_URL") or "").strip(),
        redis_timeout=_float(env, "REDIS_TIMEOUT", 0.35),
        intent_cache_ttl=_int(env, "INTENT_CACHE_TTL_SECONDS", 86400 * 7),
        custom_tag_ttl=_int(env, "CUSTOM_TAG_TTL_SECONDS", 86400 * 30),
        layout_cache_ttl=_int(env, "LAYOUT_CACHE_TTL_SECONDS", 86400),
        link_check_timeout=_float(env, "LINK_CHECK_TIMEOUT_SECS", 3.0),
        assets_dir=(env.get("ASSETS_DIR") or "public/assets").strip(),
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
        default_github_user=(env.get("DEFAULT_GITHUB_USER") or "uetuluk").strip(),
    )
