"""Layout generation: categorize, look up the cache, ask the model, fall back.

``generate_layout`` only raises ``ClientError`` for a bad request. Every
upstream problem ends in the deterministic default layout instead.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from portfolio_api.categorize import categorize_intent, is_default_result
from portfolio_api.env import Env
from portfolio_api.errors import ClientError
from portfolio_api.hashing import layout_cache_key
from portfolio_api.insights import prefetch_summaries
from portfolio_api.layouts import get_default_layout
from portfolio_api.links import check_and_sanitize
from portfolio_api.llm_client import FailureKind, Outcome
from portfolio_api.models import GeneratedLayout, GenerateRequest, VisitorContext
from portfolio_api.prompts import ALLOWED_VISITOR_TAGS, LAYOUT_SCHEMA, build_system_prompt, build_user_prompt
from portfolio_api.validators import collect_layout_errors
from portfolio_api.visitor import derive_ui_hints

log = logging.getLogger(__name__)


def _to_layout(doc: Dict[str, Any]) -> Outcome[GeneratedLayout]:
    errors = collect_layout_errors(doc)
    if errors:
        return Outcome.fail(FailureKind.INVALID_STRUCTURE, "; ".join(f"{e['path']}: {e['message']}" for e in errors[:5]))
    try:
        return Outcome.success(GeneratedLayout.model_validate(doc))
    except ValidationError as exc:
        return Outcome.fail(FailureKind.INVALID_STRUCTURE, str(exc))


def _cached_layout(env: Env, key: str) -> Optional[GeneratedLayout]:
    if env.store is None:
        return None
    try:
        raw = env.store.get_json(key)
        return GeneratedLayout.model_validate(raw) if raw is not None else None
    except ValidationError:
        log.warning("generate.bad_cache_entry key=%s", key)
    except Exception as exc:
        log.warning("generate.cache_error key=%s: %s", key, exc)
    return None


def _cache_layout(env: Env, key: str, layout: GeneratedLayout) -> None:
    if env.store is None:
        return
    try:
        env.store.put_json(key, layout.to_json_dict(), ttl=env.settings.layout_cache_ttl)
    except Exception as exc:
        log.warning("generate.cache_error key=%s: %s", key, exc)


def with_metadata(
    layout: GeneratedLayout,
    *,
    cache_key: str,
    context: VisitorContext,
    categorization: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload = layout.to_json_dict()
    if categorization is not None:
        payload["_categorization"] = categorization
    payload["_cacheKey"] = cache_key
    payload["_visitorContext"] = context.summary()
    payload["_uiHints"] = derive_ui_hints(context).to_json_dict()
    return payload


def request_layout(
    req: GenerateRequest,
    tag: str,
    context: VisitorContext,
    env: Env,
    custom_guidelines: Optional[Dict[str, str]] = None,
) -> Outcome[GeneratedLayout]:
    """One model call for a layout, validated. No retries."""
    if env.llm is None:
        return Outcome.fail(FailureKind.NOT_CONFIGURED)
    summaries = prefetch_summaries(req.portfolio_content, context, env)
    return env.llm.complete_json(
        build_system_prompt(req.portfolio_content, custom_guidelines, context, summaries),
        build_user_prompt(tag, req.custom_intent, context),
        schema_name="generated_layout",
        schema=LAYOUT_SCHEMA,
        temperature=0.7,
        max_tokens=2000,
    ).then(_to_layout)


def generate_layout(req: GenerateRequest, context: VisitorContext, env: Env) -> Dict[str, Any]:
    if not req.visitor_tag or req.portfolio_content is None:
        raise ClientError("Missing required fields")

    effective_tag = req.visitor_tag
    fallback_tag = req.visitor_tag
    custom_guidelines: Optional[Dict[str, str]] = None
    categorization: Optional[Dict[str, Any]] = None

    if req.custom_intent and req.custom_intent.strip():
        result = categorize_intent(req.custom_intent, env)
        effective_tag = result.tag_name
        if not is_default_result(result):
            fallback_tag = result.tag_name
        categorization = {
            "status": result.status,
            "tagName": result.tag_name,
            "displayName": result.display_name,
            "confidence": result.confidence,
        }
        if result.status == "new_tag" or result.tag_name not in ALLOWED_VISITOR_TAGS:
            custom_guidelines = {"tagName": result.tag_name, "guidelines": result.guidelines}

    cache_key = layout_cache_key(
        effective_tag,
        context.device.type,
        context.time.time_of_day,
        context.geo.country,
        custom_guidelines["guidelines"] if custom_guidelines else None,
    )
    meta = {"cache_key": cache_key, "context": context, "categorization": categorization}

    cached = _cached_layout(env, cache_key)
    if cached is not None:
        log.info("generate.cache_hit key=%s", cache_key)
        return with_metadata(cached, **meta)

    outcome = request_layout(req, effective_tag, context, env, custom_guidelines)
    layout = outcome.value_or(lambda: get_default_layout(fallback_tag, req.portfolio_content))
    if not outcome.ok:
        if outcome.failure is FailureKind.NOT_CONFIGURED:
            log.warning("generate.ai_not_configured tag=%s", fallback_tag)
        else:
            log.warning("generate.fallback kind=%s detail=%s", outcome.failure.value, outcome.detail[:200])
        return with_metadata(layout, **meta)

    layout = check_and_sanitize(layout, timeout=env.settings.link_check_timeout)
    _cache_layout(env, cache_key, layout)
    log.info("generate.ok tag=%s layout=%s sections=%d", effective_tag, layout.layout, len(layout.sections))
    return with_metadata(layout, **meta)
