""" Configuration sources and the composite adapter over them. """

from __future__ import annotations

import base64
from dataclasses import dataclass, field
import json
import os
from pathlib import Path
from typing import Any, Protocol

try:
    import boto3
except ImportError:  # pragma: no cover - optional dependency for local usage
    boto3 = None


_TRUTHY = {"1", "true", "yes", "y", "on"}


def parse_bool(raw: str | None, default: bool = False) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        try:
            return int(float(raw))
        except ValueError:
            return None


def parse_float(raw: str | None) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw.strip())
    except ValueError:
        return None


class ConfigSource(Protocol):
    """Strategy interface for pulling configuration values from a backing store."""

    def get(self, key: str) -> str | None: ...


@dataclass(slots=True)
class EnvConfigSource:
    """Reads values directly from environment variables."""

    prefix: str | None = None

    def get(self, key: str) -> str | None:
        env_key = f"{self.prefix}{key}" if self.prefix else key
        return os.getenv(env_key)


@dataclass(slots=True)
class DotEnvConfigSource:
    """Minimal .env reader (KEY=VALUE, optional `export`, # comments)."""

    path: Path = Path(".env")
    encoding: str = "utf-8"
    _cache: dict[str, str] = field(default_factory=dict, init=False)
    _loaded: bool = field(default=False, init=False)

    def _load(self) -> None:
        if self._loaded:
            return
        try:
            for raw_line in self.path.read_text(encoding=self.encoding).splitlines():
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                if line.startswith("export "):
                    line = line[len("export "):].lstrip()
                key, value = line.split("=", 1)
                self._cache[key.strip()] = self._clean_value(value.strip())
        except FileNotFoundError:
            pass
        finally:
            self._loaded = True

    @staticmethod
    def _clean_value(value: str) -> str:
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            return value[1:-1]
        # Unquoted values may carry a trailing comment.
        if " #" in value:
            value = value.split(" #", 1)[0].rstrip()
        return value

    def items(self) -> dict[str, str]:
        self._load()
        return dict(self._cache)

    def get(self, key: str) -> str | None:
        self._load()
        return self._cache.get(key)


@dataclass(slots=True)
class SecretsManagerConfigSource:
    """Reads provider keys and LLM settings from an AWS Secrets Manager JSON secret."""

    secret_id: str
    region_name: str | None = None
    profile_name: str | None = None
    _cache: dict[str, str] = field(default_factory=dict, init=False)
    _loaded: bool = field(default=False, init=False)

    def _client(self) -> Any:
        if boto3 is None:
            raise RuntimeError("boto3 is required for SecretsManagerConfigSource")
        session = (
            boto3.session.Session(profile_name=self.profile_name)
            if self.profile_name
            else boto3.session.Session()
        )
        return session.client("secretsmanager", region_name=self.region_name)

    def _load(self) -> None:
        if self._loaded:
            return
        try:
            resp = self._client().get_secret_value(SecretId=self.secret_id)
            secret_string = resp.get("SecretString")
            if not secret_string and resp.get("SecretBinary"):
                secret_string = base64.b64decode(resp["SecretBinary"]).decode("utf-8")
            if not secret_string:
                return
            try:
                parsed = json.loads(secret_string)
            except json.JSONDecodeError:
                self._cache["SECRET_STRING"] = secret_string
                return
            if isinstance(parsed, dict):
                self._cache.update({k: str(v) for k, v in parsed.items()})
            else:
                self._cache["SECRET_STRING"] = str(parsed)
        finally:
            self._loaded = True

    def get(self, key: str) -> str | None:
        self._load()
        return self._cache.get(key)


@dataclass(slots=True)
class ConfigAdapter:
    """Composite over multiple sources (env → .env → secrets); first hit wins."""

    sources: tuple[ConfigSource, ...]

    def get(self, key: str, default: str | None = None) -> str | None:
        for source in self.sources:
            value = source.get(key)
            if value is not None:
                return value
        return default

    def get_int(self, key: str, default: int | None = None) -> int | None:
        parsed = parse_int(self.get(key))
        return default if parsed is None else parsed

    def get_float(self, key: str, default: float | None = None) -> float | None:
        parsed = parse_float(self.get(key))
        return default if parsed is None else parsed

    def get_bool(self, key: str, default: bool = False) -> bool:
        return parse_bool(self.get(key), default)
