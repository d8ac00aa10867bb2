from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from portfolio_api.config import Settings, load_settings
from portfolio_api.llm_client import LLMClient, build_llm_client
from portfolio_api.store import KVStore, build_store

log = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Env:
    """Everything a request needs from the outside world.

    ``store`` and ``llm`` are optional: without a store caches and limiters
    are skipped, without an LLM client every AI step takes its fallback.
    """

    settings: Settings = field(default_factory=Settings)
    store: Optional[KVStore] = None
    llm: Optional[LLMClient] = None
    clock: Callable[[], int] = _now_ms


def build_env(settings: Optional[Settings] = None) -> Env:
    settings = settings or load_settings()
    store = build_store(settings.redis_url, timeout=settings.redis_timeout)
    llm = build_llm_client(settings)
    log.info(
        "env: store=%s ai=%s model=%s",
        type(store).__name__ if store is not None else "none",
        "on" if llm is not None else "off",
        settings.llm_model,
    )
    return Env(settings=settings, store=store, llm=llm)
