"""Single-shot client for an OpenAI-compatible chat-completions gateway.

Calls never raise for upstream problems. They return an ``Outcome`` holding
either the parsed JSON object or a ``FailureKind``, and the caller decides
the fallback. There are no retries: each call hits the gateway exactly once.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import requests

from portfolio_api.config import Settings

log = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


class FailureKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    EMPTY_CONTENT = "empty_content"
    INVALID_JSON = "invalid_json"
    INVALID_STRUCTURE = "invalid_structure"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    failure: Optional[FailureKind] = None
    detail: str = ""

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: FailureKind, detail: str = "") -> "Outcome[Any]":
        return cls(failure=kind, detail=detail)

    @property
    def ok(self) -> bool:
        return self.failure is None

    def then(self, fn: Callable[[T], "Outcome[U]"]) -> "Outcome[U]":
        """Chain another fallible step; failures pass through untouched."""
        if not self.ok:
            return self  # type: ignore[return-value]
        return fn(self.value)  # type: ignore[arg-type]

    def value_or(self, fallback: Union[T, Callable[[], T]]) -> T:
        """Collapse every failure kind to the same fallback value."""
        if self.ok:
            return self.value  # type: ignore[return-value]
        return fallback() if callable(fallback) else fallback


def _parse_json_object(text: str) -> Outcome[Dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except ValueError as exc:
        return Outcome.fail(FailureKind.INVALID_JSON, str(exc))
    if not isinstance(parsed, dict):
        return Outcome.fail(FailureKind.INVALID_STRUCTURE, f"expected object, got {type(parsed).__name__}")
    return Outcome.success(parsed)


class LLMClient:
    def __init__(self, api_key: str, endpoint: str, model: str, timeout: float = 30.0) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout

    def _payload(
        self,
        messages: List[Dict[str, str]],
        schema_name: str,
        schema: Dict[str, Any],
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "strict": True, "schema": schema},
            },
        }

    def complete_json(
        self,
        system: str,
        user: str,
        *,
        schema_name: str,
        schema: Dict[str, Any],
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> Outcome[Dict[str, Any]]:
        """Ask for a JSON object constrained by ``schema`` and return it parsed."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "portfolio-personalizer",
        }
        body = self._payload(
            [{"role": "system", "content": system}, {"role": "user", "content": user}],
            schema_name,
            schema,
            temperature,
            max_tokens,
        )
        try:
            resp = requests.post(self.endpoint, headers=headers, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            log.warning("llm: request error schema=%s: %r", schema_name, exc)
            return Outcome.fail(FailureKind.TRANSPORT, repr(exc))

        if not 200 <= resp.status_code < 300:
            try:
                msg = resp.text[:400]
            except Exception:
                msg = ""
            log.warning("llm: HTTP %s schema=%s: %s", resp.status_code, schema_name, msg)
            return Outcome.fail(FailureKind.HTTP_STATUS, str(resp.status_code))

        try:
            data = resp.json()
        except ValueError:
            log.warning("llm: non-JSON HTTP body schema=%s", schema_name)
            return Outcome.fail(FailureKind.INVALID_JSON, "non-JSON HTTP body")

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content or not isinstance(content, str):
            log.warning("llm: empty response content schema=%s", schema_name)
            return Outcome.fail(FailureKind.EMPTY_CONTENT)

        outcome = _parse_json_object(content)
        if not outcome.ok:
            log.warning("llm: unparseable content schema=%s: %s", schema_name, outcome.detail)
        return outcome


def build_llm_client(settings: Settings) -> Optional[LLMClient]:
    """Return a client, or None when no credentials are configured."""
    if not settings.ai_configured:
        return None
    return LLMClient(
        api_key=settings.llm_api_key,
        endpoint=settings.llm_endpoint,
        model=settings.llm_model,
        timeout=settings.llm_timeout_secs,
    )
