"""Fluent chat model builders, one per provider variant.

Every builder exposes the same setters so callers can configure any provider
with one call sequence. A variant overrides the setters it honors; the rest
fall through to `ChatModelBuilder._ignore`, which logs and changes nothing.
`build()` is pure: no SDK client is created and no request is sent until the
returned model is used.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, ClassVar, Mapping

from core.chat_models import (
    AnthropicChatModel,
    AnthropicStreamingChatModel,
    ChatModel,
    GeminiChatModel,
    GeminiStreamingChatModel,
    OllamaChatModel,
    OllamaStreamingChatModel,
    OpenAIChatModel,
    OpenAIStreamingChatModel,
    StreamingChatModel,
)
from core.config import get_config_value
from core.models import GenAIProvider
from core.obs import Logger, NullLogger

MISTRAL_BASE_URL = "https://api.mistral.ai/v1"


class ConfigurationError(ValueError):
    """A variant-mandatory builder option was not set."""


def _seconds(timeout: timedelta | float | int | None) -> float | None:
    if timeout is None:
        return None
    if isinstance(timeout, timedelta):
        return timeout.total_seconds()
    return float(timeout)


class ChatModelBuilder:
    """Base builder: model name and logging flags are universal, everything else is a no-op."""

    provider: ClassVar[GenAIProvider]
    required: ClassVar[tuple[str, ...]] = ("model_name",)

    def __init__(self, streaming: bool = False, logger: Logger | None = None) -> None:
        self._streaming = streaming
        self._logger: Logger = logger or NullLogger()
        self._model_name: str | None = None
        self._log_requests = False
        self._log_responses = False

    @property
    def streaming(self) -> bool:
        return self._streaming

    def _ignore(self, option: str) -> "ChatModelBuilder":
        self._logger.info("llm.option_ignored", provider=self.provider.value, option=option)
        return self

    # ---- options every variant honors ----

    def model_name(self, model_name: str) -> "ChatModelBuilder":
        self._model_name = model_name
        return self

    def log_requests_responses(self, log_requests: bool, log_responses: bool) -> "ChatModelBuilder":
        self._log_requests = bool(log_requests)
        self._log_responses = bool(log_responses)
        return self

    # ---- options a variant may honor ----

    def base_url(self, base_url: str) -> "ChatModelBuilder":
        return self._ignore("base_url")

    def api_key(self, api_key: str) -> "ChatModelBuilder":
        return self._ignore("api_key")

    def custom_headers(self, custom_headers: Mapping[str, str]) -> "ChatModelBuilder":
        return self._ignore("custom_headers")

    def temperature(self, temperature: float) -> "ChatModelBuilder":
        return self._ignore("temperature")

    def top_p(self, top_p: float) -> "ChatModelBuilder":
        return self._ignore("top_p")

    def top_k(self, top_k: int) -> "ChatModelBuilder":
        return self._ignore("top_k")

    def max_tokens(self, max_tokens: int) -> "ChatModelBuilder":
        return self._ignore("max_tokens")

    def max_output_tokens(self, max_output_tokens: int) -> "ChatModelBuilder":
        return self._ignore("max_output_tokens")

    def max_completion_tokens(self, max_completion_tokens: int) -> "ChatModelBuilder":
        return self._ignore("max_completion_tokens")

    def presence_penalty(self, presence_penalty: float) -> "ChatModelBuilder":
        return self._ignore("presence_penalty")

    def frequency_penalty(self, frequency_penalty: float) -> "ChatModelBuilder":
        return self._ignore("frequency_penalty")

    def repeat_penalty(self, repeat_penalty: float) -> "ChatModelBuilder":
        return self._ignore("repeat_penalty")

    def seed(self, seed: int) -> "ChatModelBuilder":
        return self._ignore("seed")

    def max_retries(self, max_retries: int) -> "ChatModelBuilder":
        return self._ignore("max_retries")

    def timeout(self, timeout: timedelta | float) -> "ChatModelBuilder":
        return self._ignore("timeout")

    def organization_id(self, organization_id: str) -> "ChatModelBuilder":
        return self._ignore("organization_id")

    def allow_code_execution(self, allow_code_execution: bool) -> "ChatModelBuilder":
        return self._ignore("allow_code_execution")

    def include_code_execution_output(self, include_code_execution_output: bool) -> "ChatModelBuilder":
        return self._ignore("include_code_execution_output")

    # ---- terminal ----

    def _check_required(self) -> None:
        missing = [name for name in self.required if not getattr(self, f"_{name}", None)]
        if missing:
            raise ConfigurationError(
                f"{self.provider.value} builder requires: {', '.join(missing)}"
            )

    def _common(self) -> dict[str, Any]:
        return {
            "model": self._model_name,
            "provider": self.provider.value,
            "log_requests": self._log_requests,
            "log_responses": self._log_responses,
            "logger": self._logger,
        }

    def build(self) -> ChatModel | StreamingChatModel:
        self._check_required()
        return self._build()

    def _build(self) -> ChatModel | StreamingChatModel:
        raise NotImplementedError


# ---------- OpenAI-compatible variants ----------


class _OpenAICompatibleBuilder(ChatModelBuilder):
    """Options shared by every endpoint spoken to through the `openai` SDK."""

    def __init__(self, streaming: bool = False, logger: Logger | None = None) -> None:
        super().__init__(streaming=streaming, logger=logger)
        self._client_options: dict[str, Any] = {}
        self._params: dict[str, Any] = {}

    def base_url(self, base_url: str) -> ChatModelBuilder:
        self._client_options["base_url"] = base_url
        return self

    def temperature(self, temperature: float) -> ChatModelBuilder:
        self._params["temperature"] = temperature
        return self

    def top_p(self, top_p: float) -> ChatModelBuilder:
        self._params["top_p"] = top_p
        return self

    def max_tokens(self, max_tokens: int) -> ChatModelBuilder:
        self._params["max_tokens"] = max_tokens
        return self

    def max_retries(self, max_retries: int) -> ChatModelBuilder:
        self._client_options["max_retries"] = max_retries
        return self

    def timeout(self, timeout: timedelta | float) -> ChatModelBuilder:
        self._client_options["timeout"] = _seconds(timeout)
        return self

    def _default_client_options(self) -> dict[str, Any]:
        return {}

    def _build(self) -> ChatModel | StreamingChatModel:
        options = {**self._default_client_options(), **self._client_options}
        options = {k: v for k, v in options.items() if v is not None}
        cls = OpenAIStreamingChatModel if self._streaming else OpenAIChatModel
        return cls(client_options=options, params=dict(self._params), **self._common())


class OpenAIBuilder(_OpenAICompatibleBuilder):
    provider = GenAIProvider.OPEN_AI

    def api_key(self, api_key: str) -> ChatModelBuilder:
        self._client_options["api_key"] = api_key
        return self

    def custom_headers(self, custom_headers: Mapping[str, str]) -> ChatModelBuilder:
        self._client_options["default_headers"] = dict(custom_headers)
        return self

    def organization_id(self, organization_id: str) -> ChatModelBuilder:
        self._client_options["organization"] = organization_id
        return self

    def max_completion_tokens(self, max_completion_tokens: int) -> ChatModelBuilder:
        self._params["max_completion_tokens"] = max_completion_tokens
        return self

    def presence_penalty(self, presence_penalty: float) -> ChatModelBuilder:
        self._params["presence_penalty"] = presence_penalty
        return self

    def frequency_penalty(self, frequency_penalty: float) -> ChatModelBuilder:
        self._params["frequency_penalty"] = frequency_penalty
        return self

    def seed(self, seed: int) -> ChatModelBuilder:
        self._params["seed"] = seed
        return self

    def _default_client_options(self) -> dict[str, Any]:
        return {"api_key": get_config_value("OPENAI_API_KEY")}


class MistralBuilder(_OpenAICompatibleBuilder):
    """Mistral's chat completions endpoint through the `openai` SDK."""

    provider = GenAIProvider.MISTRAL

    def api_key(self, api_key: str) -> ChatModelBuilder:
        self._client_options["api_key"] = api_key
        return self

    def custom_headers(self, custom_headers: Mapping[str, str]) -> ChatModelBuilder:
        self._client_options["default_headers"] = dict(custom_headers)
        return self

    def presence_penalty(self, presence_penalty: float) -> ChatModelBuilder:
        self._params["presence_penalty"] = presence_penalty
        return self

    def frequency_penalty(self, frequency_penalty: float) -> ChatModelBuilder:
        self._params["frequency_penalty"] = frequency_penalty
        return self

    def seed(self, seed: int) -> ChatModelBuilder:
        # Mistral names it random_seed; the SDK forwards extra_body verbatim.
        self._params["extra_body"] = {"random_seed": seed}
        return self

    def _default_client_options(self) -> dict[str, Any]:
        return {"base_url": MISTRAL_BASE_URL, "api_key": get_config_value("MISTRAL_API_KEY")}


class LocalAiBuilder(_OpenAICompatibleBuilder):
    """Self-hosted LocalAI server; the base URL is mandatory and no key is sent."""

    provider = GenAIProvider.LOCAL_AI
    required = ("model_name", "base_url")

    @property
    def _base_url(self) -> str | None:
        return self._client_options.get("base_url")

    def _default_client_options(self) -> dict[str, Any]:
        # The SDK refuses to start without a key; LocalAI ignores it.
        return {"api_key": "not-needed"}


# ---------- Anthropic ----------


class AnthropicBuilder(ChatModelBuilder):
    provider = GenAIProvider.ANTHROPIC

    def __init__(self, streaming: bool = False, logger: Logger | None = None) -> None:
        super().__init__(streaming=streaming, logger=logger)
        self._client_options: dict[str, Any] = {}
        self._params: dict[str, Any] = {}

    def base_url(self, base_url: str) -> ChatModelBuilder:
        self._client_options["base_url"] = base_url
        return self

    def api_key(self, api_key: str) -> ChatModelBuilder:
        self._client_options["api_key"] = api_key
        return self

    def custom_headers(self, custom_headers: Mapping[str, str]) -> ChatModelBuilder:
        self._client_options["default_headers"] = dict(custom_headers)
        return self

    def temperature(self, temperature: float) -> ChatModelBuilder:
        self._params["temperature"] = temperature
        return self

    def top_p(self, top_p: float) -> ChatModelBuilder:
        self._params["top_p"] = top_p
        return self

    def top_k(self, top_k: int) -> ChatModelBuilder:
        self._params["top_k"] = top_k
        return self

    def max_tokens(self, max_tokens: int) -> ChatModelBuilder:
        self._params["max_tokens"] = max_tokens
        return self

    def max_retries(self, max_retries: int) -> ChatModelBuilder:
        self._client_options["max_retries"] = max_retries
        return self

    def timeout(self, timeout: timedelta | float) -> ChatModelBuilder:
        self._client_options["timeout"] = _seconds(timeout)
        return self

    def _build(self) -> ChatModel | StreamingChatModel:
        options = {"api_key": get_config_value("ANTHROPIC_API_KEY"), **self._client_options}
        options = {k: v for k, v in options.items() if v is not None}
        cls = AnthropicStreamingChatModel if self._streaming else AnthropicChatModel
        return cls(client_options=options, params=dict(self._params), **self._common())


# ---------- Google Gemini ----------


class GoogleBuilder(ChatModelBuilder):
    provider = GenAIProvider.GOOGLE

    def __init__(self, streaming: bool = False, logger: Logger | None = None) -> None:
        super().__init__(streaming=streaming, logger=logger)
        self._api_key: str | None = None
        self._generation_config: dict[str, Any] = {}
        self._timeout: float | None = None
        self._allow_code_execution = False
        self._include_code_execution_output = False

    def api_key(self, api_key: str) -> ChatModelBuilder:
        self._api_key = api_key
        return self

    def temperature(self, temperature: float) -> ChatModelBuilder:
        self._generation_config["temperature"] = temperature
        return self

    def top_p(self, top_p: float) -> ChatModelBuilder:
        self._generation_config["top_p"] = top_p
        return self

    def top_k(self, top_k: int) -> ChatModelBuilder:
        self._generation_config["top_k"] = top_k
        return self

    def max_output_tokens(self, max_output_tokens: int) -> ChatModelBuilder:
        self._generation_config["max_output_tokens"] = max_output_tokens
        return self

    def presence_penalty(self, presence_penalty: float) -> ChatModelBuilder:
        self._generation_config["presence_penalty"] = presence_penalty
        return self

    def frequency_penalty(self, frequency_penalty: float) -> ChatModelBuilder:
        self._generation_config["frequency_penalty"] = frequency_penalty
        return self

    def timeout(self, timeout: timedelta | float) -> ChatModelBuilder:
        self._timeout = _seconds(timeout)
        return self

    def allow_code_execution(self, allow_code_execution: bool) -> ChatModelBuilder:
        self._allow_code_execution = bool(allow_code_execution)
        return self

    def include_code_execution_output(self, include_code_execution_output: bool) -> ChatModelBuilder:
        self._include_code_execution_output = bool(include_code_execution_output)
        return self

    def _build(self) -> ChatModel | StreamingChatModel:
        cls = GeminiStreamingChatModel if self._streaming else GeminiChatModel
        return cls(
            api_key=self._api_key or get_config_value("GOOGLE_API_KEY"),
            generation_config=dict(self._generation_config),
            timeout=self._timeout,
            allow_code_execution=self._allow_code_execution,
            include_code_execution_output=self._include_code_execution_output,
            **self._common(),
        )


# ---------- Ollama ----------


class OllamaBuilder(ChatModelBuilder):
    provider = GenAIProvider.OLLAMA
    required = ("model_name", "base_url")

    def __init__(self, streaming: bool = False, logger: Logger | None = None) -> None:
        super().__init__(streaming=streaming, logger=logger)
        self._base_url: str | None = None
        self._headers: dict[str, str] = {}
        self._options: dict[str, Any] = {}
        self._timeout: float | None = None
        self._max_retries = 0

    def base_url(self, base_url: str) -> ChatModelBuilder:
        self._base_url = base_url
        return self

    def custom_headers(self, custom_headers: Mapping[str, str]) -> ChatModelBuilder:
        self._headers = dict(custom_headers)
        return self

    def temperature(self, temperature: float) -> ChatModelBuilder:
        self._options["temperature"] = temperature
        return self

    def top_p(self, top_p: float) -> ChatModelBuilder:
        self._options["top_p"] = top_p
        return self

    def top_k(self, top_k: int) -> ChatModelBuilder:
        self._options["top_k"] = top_k
        return self

    def max_tokens(self, max_tokens: int) -> ChatModelBuilder:
        self._options["num_predict"] = max_tokens
        return self

    def presence_penalty(self, presence_penalty: float) -> ChatModelBuilder:
        self._options["presence_penalty"] = presence_penalty
        return self

    def frequency_penalty(self, frequency_penalty: float) -> ChatModelBuilder:
        self._options["frequency_penalty"] = frequency_penalty
        return self

    def repeat_penalty(self, repeat_penalty: float) -> ChatModelBuilder:
        self._options["repeat_penalty"] = repeat_penalty
        return self

    def seed(self, seed: int) -> ChatModelBuilder:
        self._options["seed"] = seed
        return self

    def max_retries(self, max_retries: int) -> ChatModelBuilder:
        self._max_retries = int(max_retries or 0)
        return self

    def timeout(self, timeout: timedelta | float) -> ChatModelBuilder:
        self._timeout = _seconds(timeout)
        return self

    def _build(self) -> ChatModel | StreamingChatModel:
        cls = OllamaStreamingChatModel if self._streaming else OllamaChatModel
        return cls(
            base_url=self._base_url,
            options=dict(self._options),
            headers=dict(self._headers),
            timeout=self._timeout,
            max_retries=self._max_retries,
            **self._common(),
        )


BUILDERS: dict[GenAIProvider, type[ChatModelBuilder]] = {
    GenAIProvider.OPEN_AI: OpenAIBuilder,
    GenAIProvider.ANTHROPIC: AnthropicBuilder,
    GenAIProvider.GOOGLE: GoogleBuilder,
    GenAIProvider.MISTRAL: MistralBuilder,
    GenAIProvider.LOCAL_AI: LocalAiBuilder,
    GenAIProvider.OLLAMA: OllamaBuilder,
}
