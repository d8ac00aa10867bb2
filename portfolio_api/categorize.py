"""Map free-text visitor intent onto an audience tag."""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import ValidationError

from portfolio_api.env import Env
from portfolio_api.hashing import intent_cache_key, tag_key
from portfolio_api.llm_client import FailureKind, Outcome
from portfolio_api.models import CategorizationResult, CustomTag
from portfolio_api.prompts import (
    ALLOWED_VISITOR_TAGS,
    CATEGORIZATION_SCHEMA,
    TAG_GUIDELINES,
    build_categorization_prompt,
    build_categorization_user_prompt,
)

log = logging.getLogger(__name__)

MAX_TAG_LENGTH = 20
MAX_GUIDELINES_LENGTH = 1000
DEFAULT_REASON = "Default fallback"

_NON_TAG_CHARS = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-+")


def default_result() -> CategorizationResult:
    return CategorizationResult(
        status="matched",
        tag_name="friend",
        display_name="Friend",
        guidelines=TAG_GUIDELINES["friend"],
        confidence=1.0,
        reason=DEFAULT_REASON,
    )


def is_default_result(result: CategorizationResult) -> bool:
    return result.tag_name == "friend" and result.reason == DEFAULT_REASON


def sanitize_tag_name(raw: str) -> str:
    tag = _NON_TAG_CHARS.sub("-", (raw or "").lower())
    tag = _HYPHEN_RUNS.sub("-", tag).strip("-")[:MAX_TAG_LENGTH]
    return tag or "friend"


def sanitize_result(result: CategorizationResult) -> CategorizationResult:
    tag = sanitize_tag_name(result.tag_name)
    if result.status == "matched" and tag in ALLOWED_VISITOR_TAGS:
        return result.model_copy(update={"tag_name": tag, "guidelines": TAG_GUIDELINES[tag]})
    if result.status == "rejected":
        return result.model_copy(update={"tag_name": "friend", "guidelines": TAG_GUIDELINES["friend"]})
    return result.model_copy(
        update={
            "tag_name": tag,
            "confidence": min(1.0, max(0.0, result.confidence)),
            "guidelines": result.guidelines[:MAX_GUIDELINES_LENGTH],
        }
    )


def _to_result(data: Dict[str, Any]) -> Outcome[CategorizationResult]:
    try:
        return Outcome.success(sanitize_result(CategorizationResult.model_validate(data)))
    except ValidationError as exc:
        return Outcome.fail(FailureKind.INVALID_STRUCTURE, str(exc))


def store_new_tag(result: CategorizationResult, original_intent: str, env: Env) -> bool:
    """Persist a minted tag unless one with the same name already exists."""
    if env.store is None:
        return False
    record = CustomTag(
        tag_name=result.tag_name,
        display_name=result.display_name,
        guidelines=result.guidelines,
        mapped_from=original_intent,
        created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )
    try:
        written = env.store.add_json(tag_key(result.tag_name), record.to_json_dict(), ttl=env.settings.custom_tag_ttl)
    except Exception as exc:
        log.warning("categorize.tag_store_error tag=%s: %s", result.tag_name, exc)
        return False
    if written:
        log.info("categorize.new_tag tag=%s", result.tag_name)
    return written


def _cached(env: Env, key: str):
    if env.store is None:
        return None
    try:
        raw = env.store.get_json(key)
        return CategorizationResult.model_validate(raw) if raw is not None else None
    except ValidationError:
        log.warning("categorize.bad_cache_entry key=%s", key)
    except Exception as exc:
        log.warning("categorize.cache_error key=%s: %s", key, exc)
    return None


def categorize_intent(custom_intent: str, env: Env) -> CategorizationResult:
    key = intent_cache_key(custom_intent)
    cached = _cached(env, key)
    if cached is not None:
        log.debug("categorize.cache_hit key=%s", key)
        return cached

    if env.llm is None:
        return default_result()

    outcome = env.llm.complete_json(
        build_categorization_prompt(),
        build_categorization_user_prompt(custom_intent),
        schema_name="categorization_result",
        schema=CATEGORIZATION_SCHEMA,
        temperature=0.3,
        max_tokens=1000,
    ).then(_to_result)
    result = outcome.value_or(default_result)
    if not outcome.ok:
        log.warning("categorize.fallback kind=%s", outcome.failure.value)
        return result

    if result.status == "rejected":
        log.warning("categorize.rejected intent=%r reason=%s", custom_intent[:80], result.reason)

    if env.store is not None:
        try:
            env.store.put_json(key, result.to_json_dict(), ttl=env.settings.intent_cache_ttl)
        except Exception as exc:
            log.warning("categorize.cache_error key=%s: %s", key, exc)

    if result.status == "new_tag":
        store_new_tag(result, custom_intent, env)
    return result
