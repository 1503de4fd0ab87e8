"""Factory functions to get chat models based on configuration."""

from __future__ import annotations

from core.chat_models import ChatModel, StreamingChatModel
from core.llm_builders import BUILDERS, ChatModelBuilder
from core.models import GenAIProvider
from core.obs import JsonRepoLogger, Logger
from core.settings import LLMSettings, get_llm_settings


def get_chat_model_builder(
    provider: GenAIProvider | str,
    *,
    streaming: bool = False,
    logger: Logger | None = None,
) -> ChatModelBuilder:
    try:
        variant = GenAIProvider.parse(provider)
    except ValueError as exc:
        raise ValueError(f"Unknown LLM provider '{provider}'") from exc
    return BUILDERS[variant](streaming=streaming, logger=logger)


def configure_builder(builder: ChatModelBuilder, settings: LLMSettings) -> ChatModelBuilder:
    """Apply every configured option through the same call sequence.

    Variants decide what each option means for them; unset settings are skipped.
    """
    builder.model_name(settings.model).log_requests_responses(
        settings.log_requests, settings.log_responses
    )
    if settings.base_url:
        builder.base_url(settings.base_url)
    if settings.api_key:
        builder.api_key(settings.api_key)
    if settings.custom_headers:
        builder.custom_headers(settings.custom_headers)
    if settings.temperature is not None:
        builder.temperature(settings.temperature)
    if settings.top_p is not None:
        builder.top_p(settings.top_p)
    if settings.top_k is not None:
        builder.top_k(settings.top_k)
    if settings.max_tokens is not None:
        builder.max_tokens(settings.max_tokens).max_output_tokens(settings.max_tokens)
    if settings.max_retries is not None:
        builder.max_retries(settings.max_retries)
    if settings.timeout_seconds is not None:
        builder.timeout(settings.timeout_seconds)
    if settings.organization_id:
        builder.organization_id(settings.organization_id)
    return builder


def get_chat_model(
    settings: LLMSettings | None = None,
    logger: Logger | None = None,
) -> ChatModel:
    # Use a shared JSON repo logger by default so all model calls are observable.
    settings = settings or get_llm_settings()
    logger = logger or JsonRepoLogger(service="llm")
    builder = get_chat_model_builder(settings.provider, logger=logger)
    return configure_builder(builder, settings).build()


def get_streaming_chat_model(
    settings: LLMSettings | None = None,
    logger: Logger | None = None,
) -> StreamingChatModel:
    settings = settings or get_llm_settings()
    logger = logger or JsonRepoLogger(service="llm")
    builder = get_chat_model_builder(settings.provider, streaming=True, logger=logger)
    return configure_builder(builder, settings).build()
