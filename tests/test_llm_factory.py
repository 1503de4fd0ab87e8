import types

import pytest

from core.chat_models import (
    AnthropicChatModel,
    GeminiChatModel,
    OllamaChatModel,
    OllamaStreamingChatModel,
    OpenAIChatModel,
    OpenAIStreamingChatModel,
)
from core.llm_builders import LocalAiBuilder, OpenAIBuilder
from core.llm_factory import (
    configure_builder,
    get_chat_model,
    get_chat_model_builder,
    get_streaming_chat_model,
)
from core.models import GenAIProvider
from core.obs import NullLogger
from core.settings import LLMSettings


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for key in ["LLM_PROVIDER", "LLM_MODEL", "LLM_BASE_URL", "LLM_TIMEOUT_SECONDS", "OPENAI_API_KEY"]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LLM_MODEL", "some-model")
    monkeypatch.setenv("LLM_BASE_URL", "http://localhost:8080")


@pytest.mark.parametrize(
    "provider,expected",
    [
        ("openai", OpenAIChatModel),
        ("anthropic", AnthropicChatModel),
        ("google", GeminiChatModel),
        ("mistral", OpenAIChatModel),
        ("local-ai", OpenAIChatModel),
        ("ollama", OllamaChatModel),
    ],
)
def test_factory_returns_expected_models(monkeypatch, provider, expected):
    monkeypatch.setenv("LLM_PROVIDER", provider)
    model = get_chat_model(logger=NullLogger())
    assert type(model) is expected
    assert model.model == "some-model"


def test_factory_streaming_models(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "ollama")
    assert isinstance(get_streaming_chat_model(logger=NullLogger()), OllamaStreamingChatModel)
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    from core import settings

    settings.get_llm_settings.cache_clear()
    assert isinstance(get_streaming_chat_model(logger=NullLogger()), OpenAIStreamingChatModel)


def test_factory_unknown_provider_raises():
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        get_chat_model_builder("does-not-exist")


def test_get_chat_model_builder_accepts_enum_and_names():
    assert isinstance(get_chat_model_builder(GenAIProvider.OPEN_AI), OpenAIBuilder)
    assert isinstance(get_chat_model_builder("LOCAL_AI"), LocalAiBuilder)
    assert get_chat_model_builder("openai", streaming=True).streaming is True


def test_configure_builder_uses_one_call_sequence_for_every_variant():
    settings = LLMSettings(
        provider=GenAIProvider.GOOGLE,
        model="gemini-1.5-flash",
        base_url="http://ignored.example",
        api_key="g-key",
        custom_headers={"X-Team": "fixes"},
        temperature=0.3,
        top_k=4,
        max_tokens=100,
        max_retries=2,
        timeout_seconds=20.0,
        organization_id="org",
    )
    for provider in GenAIProvider:
        builder = get_chat_model_builder(provider)
        configure_builder(builder, settings).build()

    gemini = configure_builder(get_chat_model_builder(GenAIProvider.GOOGLE), settings).build()
    assert gemini.api_key == "g-key"
    assert gemini.timeout == 20.0
    assert gemini.generation_config == {"temperature": 0.3, "top_k": 4, "max_output_tokens": 100}


def test_factory_model_answers_through_sdk(monkeypatch):
    class FakeOpenAI:
        def __init__(self, **kwargs):
            self.chat = types.SimpleNamespace(completions=self)

        def create(self, **kwargs):
            message = types.SimpleNamespace(content="ok")
            return types.SimpleNamespace(choices=[types.SimpleNamespace(message=message)], usage=None)

    monkeypatch.setattr("core.chat_models.OpenAI", FakeOpenAI)
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    model = get_chat_model(logger=NullLogger())
    assert model.chat([{"role": "user", "content": "hi"}]) == "ok"
