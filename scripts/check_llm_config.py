"""Sanity-check the configured LLM provider/model without leaking secrets.

Usage:
  .venv/bin/python -m scripts.check_llm_config
  .venv/bin/python -m scripts.check_llm_config --ping
"""

from __future__ import annotations

import argparse
import os

from core.catalog import find_by_name
from core.config import get_config_value
from core.llm_factory import get_chat_model
from core.settings import api_key_name, get_llm_settings


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--ping",
        action="store_true",
        help="Make a live LLM call (requires network + valid API key).",
    )
    args = parser.parse_args()

    settings = get_llm_settings()
    print(f"LLM_PROVIDER={settings.provider.value}")
    print(f"LLM_MODEL={settings.model}")
    print(f"LLM_TIMEOUT_SECONDS={settings.timeout_seconds}")
    if settings.base_url:
        print(f"LLM_BASE_URL={settings.base_url}")
    if settings.max_tokens is not None:
        print(f"LLM_MAX_TOKENS={settings.max_tokens}")

    entry = find_by_name(settings.model or "")
    if entry is None:
        print("catalog: model not listed")
    else:
        print(f"catalog: {entry.formatted_info}")
        if entry.provider is not settings.provider:
            print(f"warning: catalog lists {entry.name} under {entry.provider.value}")

    key_name = api_key_name(settings.provider)
    if key_name:
        key_in_config = bool(get_config_value(key_name))
        key_in_env = bool(os.getenv(key_name))
        print(f"{key_name}: configured={key_in_config} env_set={key_in_env}")
    else:
        print("API key: not required for this provider")

    model = get_chat_model(settings)
    print(f"chat model: {model.__class__.__name__}")

    if args.ping:
        resp = model.chat(
            [
                {"role": "system", "content": "Reply with a single word."},
                {"role": "user", "content": "ping"},
            ]
        )
        print("Ping response preview:", (resp or "").strip()[:100])

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
