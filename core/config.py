""" Configuration access for the fix pipeline and the model builders."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path

from core.config_adapter import (
    ConfigAdapter,
    ConfigSource,
    DotEnvConfigSource,
    EnvConfigSource,
    SecretsManagerConfigSource,
)


@lru_cache
def _config_adapter() -> ConfigAdapter:
    sources: list[ConfigSource] = [EnvConfigSource()]
    dotenv_path = Path(os.getenv("DOTENV_PATH", ".env"))
    sources.append(DotEnvConfigSource(path=dotenv_path))
    secret_id = os.getenv("AWS_SECRETSMANAGER_CONFIG_ID")
    if secret_id:
        sources.append(
            SecretsManagerConfigSource(
                secret_id=secret_id,
                region_name=os.getenv("AWS_REGION"),
                profile_name=os.getenv("AWS_PROFILE"),
            )
        )
    return ConfigAdapter(tuple(sources))


def get_config() -> ConfigAdapter:
    return _config_adapter()


def get_config_value(key: str, default: str | None = None) -> str | None:
    return _config_adapter().get(key, default)


def get_default_model() -> str:
    """Return the configured model name.

    Requires LLM_MODEL to be set; the catalog default is only a UI hint.
    """
    value = get_config_value("LLM_MODEL")
    if not value:
        raise RuntimeError("LLM_MODEL is not configured; set it in your config/.env")
    return value


def get_timeout_seconds(required: bool = True, default: float = 60.0) -> float | None:
    """Return the configured timeout (seconds) for model calls.

    With `required`, a missing LLM_TIMEOUT_SECONDS raises; an unparsable value
    falls back to `default`.
    """
    raw = get_config_value("LLM_TIMEOUT_SECONDS")
    if not raw:
        if required:
            raise RuntimeError("LLM_TIMEOUT_SECONDS is not configured; set it in your config/.env")
        return None
    try:
        return float(raw)
    except ValueError:
        return default
