import pytest

from core import config
from core.config_adapter import ConfigAdapter, DotEnvConfigSource, EnvConfigSource
from core.models import GenAIProvider
from core.settings import _parse_headers, get_llm_settings


@pytest.fixture(autouse=True)
def clear_llm_env(monkeypatch):
    for key in [
        "LLM_PROVIDER",
        "LLM_MODEL",
        "LLM_TIMEOUT_SECONDS",
        "LLM_BASE_URL",
        "LLM_TEMPERATURE",
        "LLM_TOP_P",
        "LLM_TOP_K",
        "LLM_MAX_TOKENS",
        "LLM_CUSTOM_HEADERS",
        "LLM_LOG_REQUESTS",
        "ANTHROPIC_API_KEY",
    ]:
        monkeypatch.delenv(key, raising=False)


def test_get_default_model_requires_llm_model(monkeypatch):
    # No LLM_MODEL → must raise, no implicit defaults.
    with pytest.raises(RuntimeError):
        config.get_default_model()


def test_get_default_model_reads_llm_model(monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "gemini-1.5-pro")
    assert config.get_default_model() == "gemini-1.5-pro"


def test_get_timeout_seconds_requires_config(monkeypatch):
    with pytest.raises(RuntimeError):
        config.get_timeout_seconds()


def test_get_timeout_seconds_optional(monkeypatch):
    assert config.get_timeout_seconds(required=False) is None


def test_get_timeout_seconds_parses_value(monkeypatch):
    monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "90")
    assert config.get_timeout_seconds() == 90.0


def test_dotenv_source_parses_exports_quotes_and_comments(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\n"
        "export LLM_MODEL=gpt-4o-mini\n"
        'LLM_BASE_URL="http://localhost:8080/v1"\n'
        "LLM_TEMPERATURE=0.2 # low\n"
        "not a pair\n",
        encoding="utf-8",
    )
    source = DotEnvConfigSource(path=env_file)
    assert source.get("LLM_MODEL") == "gpt-4o-mini"
    assert source.get("LLM_BASE_URL") == "http://localhost:8080/v1"
    assert source.get("LLM_TEMPERATURE") == "0.2"
    assert source.get("missing") is None


def test_dotenv_source_missing_file_is_empty(tmp_path):
    assert DotEnvConfigSource(path=tmp_path / "nope.env").items() == {}


def test_env_wins_over_dotenv(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("LLM_MODEL=from-file\nLLM_TOP_K=7\n", encoding="utf-8")
    monkeypatch.setenv("LLM_MODEL", "from-env")
    adapter = ConfigAdapter((EnvConfigSource(), DotEnvConfigSource(path=env_file)))
    assert adapter.get("LLM_MODEL") == "from-env"
    assert adapter.get_int("LLM_TOP_K") == 7
    assert adapter.get_float("LLM_TOP_P", 0.9) == 0.9
    assert adapter.get_bool("LLM_LOG_REQUESTS") is False


def test_parse_headers():
    assert _parse_headers("X-Team: fixes; X-Trace:abc ;broken") == {"X-Team": "fixes", "X-Trace": "abc"}
    assert _parse_headers(None) == {}


def test_llm_settings_from_env(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "Anthropic")
    monkeypatch.setenv("LLM_MODEL", "claude-3-haiku-20240307")
    monkeypatch.setenv("LLM_TEMPERATURE", "0.1")
    monkeypatch.setenv("LLM_MAX_TOKENS", "512")
    monkeypatch.setenv("LLM_CUSTOM_HEADERS", "X-Team: fixes")
    monkeypatch.setenv("LLM_LOG_REQUESTS", "yes")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")

    settings = get_llm_settings()
    assert settings.provider is GenAIProvider.ANTHROPIC
    assert settings.model == "claude-3-haiku-20240307"
    assert settings.temperature == 0.1
    assert settings.max_tokens == 512
    assert settings.custom_headers == {"X-Team": "fixes"}
    assert settings.api_key == "sk-ant-test"
    assert settings.log_requests is True
    assert settings.log_responses is False
    assert settings.timeout_seconds is None


def test_llm_settings_unknown_provider(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "does-not-exist")
    monkeypatch.setenv("LLM_MODEL", "x")
    with pytest.raises(ValueError):
        get_llm_settings()
