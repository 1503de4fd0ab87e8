import os
from pathlib import Path
import sys

import pytest

# Ensure project root is on sys.path for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Load .env into os.environ so live checks can pick up keys
from core.config_adapter import DotEnvConfigSource  # noqa: E402

for key, val in DotEnvConfigSource(path=ROOT / ".env").items().items():
    os.environ.setdefault(key, val)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    from core import config as cfg
    from core import settings

    # Prevent tests from accidentally reading your real .env file.
    monkeypatch.setenv("DOTENV_PATH", "tests/.env.DO_NOT_USE")
    monkeypatch.delenv("AWS_SECRETSMANAGER_CONFIG_ID", raising=False)
    cfg._config_adapter.cache_clear()  # type: ignore[attr-defined]
    settings.get_llm_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    cfg._config_adapter.cache_clear()  # type: ignore[attr-defined]
    settings.get_llm_settings.cache_clear()  # type: ignore[attr-defined]
