"""Centralized LLM settings, read once from configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from core.config import get_config, get_default_model, get_timeout_seconds
from core.models import GenAIProvider

API_KEY_NAMES: dict[GenAIProvider, str] = {
    GenAIProvider.OPEN_AI: "OPENAI_API_KEY",
    GenAIProvider.ANTHROPIC: "ANTHROPIC_API_KEY",
    GenAIProvider.GOOGLE: "GOOGLE_API_KEY",
    GenAIProvider.MISTRAL: "MISTRAL_API_KEY",
}


def api_key_name(provider: GenAIProvider) -> str | None:
    return API_KEY_NAMES.get(provider)


@dataclass(slots=True)
class LLMSettings:
    provider: GenAIProvider = GenAIProvider.OPEN_AI
    model: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    custom_headers: dict[str, str] = field(default_factory=dict)
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    max_tokens: int | None = None
    max_retries: int | None = None
    timeout_seconds: float | None = None
    organization_id: str | None = None
    log_requests: bool = False
    log_responses: bool = False


def _parse_headers(raw: str | None) -> dict[str, str]:
    """Parse `Name: value; Other: value` into a header mapping."""
    headers: dict[str, str] = {}
    for item in (raw or "").split(";"):
        if ":" not in item:
            continue
        name, value = item.split(":", 1)
        if name.strip():
            headers[name.strip()] = value.strip()
    return headers


@lru_cache
def get_llm_settings() -> LLMSettings:
    cfg = get_config()
    provider = GenAIProvider.parse(cfg.get("LLM_PROVIDER", "openai") or "openai")
    key_name = api_key_name(provider)
    return LLMSettings(
        provider=provider,
        model=get_default_model(),
        base_url=cfg.get("LLM_BASE_URL") or None,
        api_key=cfg.get(key_name) if key_name else None,
        custom_headers=_parse_headers(cfg.get("LLM_CUSTOM_HEADERS")),
        temperature=cfg.get_float("LLM_TEMPERATURE"),
        top_p=cfg.get_float("LLM_TOP_P"),
        top_k=cfg.get_int("LLM_TOP_K"),
        max_tokens=cfg.get_int("LLM_MAX_TOKENS"),
        max_retries=cfg.get_int("LLM_MAX_RETRIES"),
        timeout_seconds=get_timeout_seconds(required=False),
        organization_id=cfg.get("OPENAI_ORGANIZATION") or None,
        log_requests=cfg.get_bool("LLM_LOG_REQUESTS"),
        log_responses=cfg.get_bool("LLM_LOG_RESPONSES"),
    )
