""" Integration tests for live chat models and one end-to-end fix."""

import os

import pytest

from core.llm_factory import get_chat_model_builder
from core.models import GenAIProvider
from core.settings import api_key_name
from editor.document import SourceDocument
from editor.java_source import Phase
from hints.variable_fix import RepairOutcome, VariableFix, VariableFixAgent

LIVE_FLAG = os.getenv("PYTEST_LLM_LIVE")

if not LIVE_FLAG:
    pytest.skip("live LLM test disabled; set PYTEST_LLM_LIVE=1 to enable", allow_module_level=True)


DEFAULT_MODELS = {
    GenAIProvider.OPEN_AI: os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
    GenAIProvider.ANTHROPIC: os.getenv("CLAUDE_MODEL", "claude-3-haiku-20240307"),
    GenAIProvider.GOOGLE: os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
    GenAIProvider.MISTRAL: os.getenv("MISTRAL_MODEL", "mistral-small-latest"),
    GenAIProvider.OLLAMA: os.getenv("OLLAMA_MODEL", "llama3"),
}


def _builder(provider: GenAIProvider):
    key_name = api_key_name(provider)
    if key_name and not os.getenv(key_name):
        pytest.skip(f"No API key for provider {provider.value}")
    builder = get_chat_model_builder(provider).model_name(DEFAULT_MODELS[provider])
    if provider is GenAIProvider.OLLAMA:
        base_url = os.getenv("OLLAMA_BASE_URL")
        if not base_url:
            pytest.skip("set OLLAMA_BASE_URL to test a local Ollama server")
        builder.base_url(base_url)
    # Same call sequence for every provider; unsupported options are ignored.
    return builder.temperature(0.0).top_k(1).seed(1).max_tokens(200).max_output_tokens(200).timeout(60)


@pytest.mark.parametrize("provider", list(DEFAULT_MODELS))
def test_chat_model_live(provider):
    model = _builder(provider).build()
    resp = model.chat([{"role": "system", "content": "You are terse."}, {"role": "user", "content": "ping"}])
    assert isinstance(resp, str) and resp.strip()


@pytest.mark.parametrize("provider", [GenAIProvider.OPEN_AI, GenAIProvider.ANTHROPIC])
def test_variable_fix_live(provider):
    source = "class Main {\n    private Foo foo = Foo.create();\n}\n"
    doc = SourceDocument(source)
    copy = doc.working_copy()
    copy.to_phase(Phase.RESOLVED)
    diagnostic = copy.unit.diagnostics[0]
    fix = VariableFix.for_diagnostic(copy.handle_for(diagnostic.node), diagnostic)
    agent = VariableFixAgent(model_factory=lambda: _builder(provider).build())
    assert agent.run(fix, doc) is RepairOutcome.APPLIED
    assert doc.text != source
