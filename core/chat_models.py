""" Chat model ports and the provider adapters behind them.

Instances are produced by the builders in `core.llm_builders`; callers should
not construct them directly. SDK clients are created on first use, so building
a model never touches the network.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Protocol

import google.generativeai as genai
import httpx
from anthropic import Anthropic
from openai import OpenAI

from core.config import get_config_value
from core.config_adapter import parse_bool
from core.obs import Logger, NullLogger, with_span

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]


# ---------- Ports ----------


class ChatModel(Protocol):
    """Submit chat messages, receive the assistant's text (or None)."""

    def chat(self, messages: Messages, **kwargs: Any) -> str | None: ...


class StreamingChatModel(Protocol):
    """Submit chat messages, receive the assistant's text as incremental chunks."""

    def stream(self, messages: Messages, **kwargs: Any) -> Iterator[str]: ...


# ---------- Logging helpers ----------


def _log_content_enabled() -> bool:
    """Whether request/response logs may include text previews.

    Enabled unless `LLM_LOG_CONTENT=0` is configured.
    """
    return parse_bool(get_config_value("LLM_LOG_CONTENT"), default=True)


def _safe_text_preview(text: str | None, limit: int = 1000) -> str:
    return (text or "")[:limit]


def _safe_messages(messages: list[dict[str, Any]], *, log_content: bool) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for m in messages:
        content = str(m.get("content") or "")
        entry: dict[str, Any] = {"role": m.get("role")}
        if log_content:
            entry["content"] = _safe_text_preview(content)
        else:
            entry["content_len"] = len(content)
        out.append(entry)
    return out


def _ensure_req_id(_args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
    req_id = kwargs.get("req_id")
    if not isinstance(req_id, str) or not req_id:
        kwargs["req_id"] = str(uuid.uuid4())


def _llm_span(event: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return with_span(
        event,
        logger_attr="logger",
        fields_fn=lambda self, *_a, **kw: {
            "req_id": kw.get("req_id"),
            "provider": self.provider,
            "model": self.model,
        },
        pre=_ensure_req_id,
    )


def _usage(resp: object, attr: str = "usage") -> dict[str, Any] | None:
    usage = getattr(resp, attr, None)
    return getattr(usage, "__dict__", None) if usage else None


@dataclass(slots=True)
class _LoggingMixin:
    """Shared request/response logging toggled by the builder's log flags."""

    model: str
    provider: str
    log_requests: bool = False
    log_responses: bool = False
    logger: Logger = field(default_factory=NullLogger, compare=False, repr=False)

    def _log_request(self, req_id: str, messages: list[dict[str, Any]], **extra: Any) -> None:
        if not self.log_requests:
            return
        self.logger.info(
            "llm.request",
            req_id=req_id,
            provider=self.provider,
            model=self.model,
            message_count=len(messages),
            messages=_safe_messages(messages, log_content=_log_content_enabled()),
            **extra,
        )

    def _log_response(self, req_id: str, content: str | None, usage: dict[str, Any] | None = None) -> None:
        if not self.log_responses:
            return
        fields: dict[str, Any] = {
            "req_id": req_id,
            "provider": self.provider,
            "model": self.model,
            "usage": usage,
            "content_len": len(content or ""),
        }
        if _log_content_enabled():
            fields["preview"] = _safe_text_preview(content)
        self.logger.info("llm.response", **fields)


# ---------- OpenAI-compatible (OpenAI, Mistral, LocalAI) ----------


@dataclass(slots=True)
class OpenAIChatModel(_LoggingMixin):
    """Chat completions through the `openai` SDK, optionally against another base URL."""

    client_options: dict[str, Any] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    _client: Any = field(default=None, init=False, compare=False, repr=False)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(**self.client_options)
        return self._client

    def _payload(self, messages: Messages, kwargs: dict[str, Any]) -> dict[str, Any]:
        payload = {"model": self.model, "messages": messages, **self.params, **kwargs}
        return {k: v for k, v in payload.items() if v is not None}

    @_llm_span("llm.chat")
    def chat(self, messages: Messages, **kwargs: Any) -> str | None:
        req_id = kwargs.pop("req_id")
        self._log_request(req_id, messages, params=self.params)
        resp = self._get_client().chat.completions.create(**self._payload(messages, kwargs))
        content = resp.choices[0].message.content if resp.choices else None
        self._log_response(req_id, content, _usage(resp))
        return content


@dataclass(slots=True)
class OpenAIStreamingChatModel(OpenAIChatModel):
    @_llm_span("llm.stream")
    def stream(self, messages: Messages, **kwargs: Any) -> Iterator[str]:
        req_id = kwargs.pop("req_id")
        self._log_request(req_id, messages, params=self.params)
        payload = self._payload(messages, kwargs)
        payload["stream"] = True
        chunks: list[str] = []
        for chunk in self._get_client().chat.completions.create(**payload):
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                chunks.append(delta)
                yield delta
        self._log_response(req_id, "".join(chunks))


# ---------- Anthropic Claude ----------


def _split_anthropic_messages(messages: Messages) -> tuple[str | None, Messages]:
    system = None
    converted: Messages = []
    for m in messages:
        role = m.get("role")
        content = m.get("content", "")
        if role == "system" and system is None:
            system = content
            continue
        if role == "assistant":
            converted.append({"role": "assistant", "content": content})
        else:
            converted.append({"role": "user", "content": content})
    return system, converted


@dataclass(slots=True)
class AnthropicChatModel(_LoggingMixin):
    client_options: dict[str, Any] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    _client: Any = field(default=None, init=False, compare=False, repr=False)

    def _get_client(self) -> Anthropic:
        if self._client is None:
            self._client = Anthropic(**self.client_options)
        return self._client

    def _payload(self, messages: Messages, kwargs: dict[str, Any]) -> tuple[dict[str, Any], Messages]:
        system, converted = _split_anthropic_messages(messages)
        merged = {"model": self.model, "messages": converted, **self.params, **kwargs}
        payload: dict[str, Any] = {k: v for k, v in merged.items() if v is not None}
        # The messages API rejects requests without max_tokens.
        payload.setdefault("max_tokens", 1024)
        if system:
            payload["system"] = system
        return payload, converted

    @_llm_span("llm.chat")
    def chat(self, messages: Messages, **kwargs: Any) -> str | None:
        req_id = kwargs.pop("req_id")
        payload, converted = self._payload(messages, kwargs)
        self._log_request(req_id, converted, system_len=len(payload.get("system") or ""))
        resp = self._get_client().messages.create(**payload)
        texts = [b.text for b in (resp.content or []) if getattr(b, "type", "text") == "text"]
        content = "".join(texts) if texts else None
        self._log_response(req_id, content, _usage(resp))
        return content


@dataclass(slots=True)
class AnthropicStreamingChatModel(AnthropicChatModel):
    @_llm_span("llm.stream")
    def stream(self, messages: Messages, **kwargs: Any) -> Iterator[str]:
        req_id = kwargs.pop("req_id")
        payload, converted = self._payload(messages, kwargs)
        self._log_request(req_id, converted, system_len=len(payload.get("system") or ""))
        chunks: list[str] = []
        with self._get_client().messages.stream(**payload) as events:
            for text in events.text_stream:
                chunks.append(text)
                yield text
        self._log_response(req_id, "".join(chunks))


# ---------- Google Gemini ----------


def _split_gemini_messages(messages: Messages) -> tuple[str | None, list[dict[str, Any]]]:
    system = None
    converted: list[dict[str, Any]] = []
    for m in messages:
        role = m.get("role")
        content = m.get("content", "")
        if role == "system" and system is None:
            system = content
            continue
        converted.append({"role": "model" if role == "assistant" else "user", "parts": [content]})
    return system, converted


def _finish_reason_to_str(reason: object) -> str:
    name = getattr(reason, "name", None)
    if isinstance(name, str) and name:
        return name
    return str(reason)


def _gemini_parts_text(resp: object, *, include_code_output: bool) -> str | None:
    """Collect text parts of the first candidate.

    Executable code and its execution result are only included when the model
    was configured to surface code-execution output.
    """
    candidates = getattr(resp, "candidates", None) or []
    if not candidates:
        return None
    parts = getattr(getattr(candidates[0], "content", None), "parts", None) or []
    texts: list[str] = []
    for part in parts:
        text = getattr(part, "text", None)
        if text:
            texts.append(str(text))
        if not include_code_output:
            continue
        code = getattr(getattr(part, "executable_code", None), "code", None)
        if code:
            texts.append(str(code))
        output = getattr(getattr(part, "code_execution_result", None), "output", None)
        if output:
            texts.append(str(output))
    if not texts:
        logger.warning(
            "gemini returned no text parts (finish_reason=%s)",
            _finish_reason_to_str(getattr(candidates[0], "finish_reason", None)),
        )
        return None
    return "\n".join(texts).strip()


@dataclass(slots=True)
class GeminiChatModel(_LoggingMixin):
    api_key: str | None = None
    generation_config: dict[str, Any] = field(default_factory=dict)
    timeout: float | None = None
    allow_code_execution: bool = False
    include_code_execution_output: bool = False

    def _model(self, system: str | None) -> Any:
        if self.api_key:
            genai.configure(api_key=self.api_key)
        tools = "code_execution" if self.allow_code_execution else None
        return genai.GenerativeModel(model_name=self.model, system_instruction=system, tools=tools)

    def _request_options(self) -> Any:
        return genai.types.RequestOptions(timeout=self.timeout) if self.timeout else None

    def _config(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        config = {**self.generation_config, **kwargs}
        return {k: v for k, v in config.items() if v is not None}

    @_llm_span("llm.chat")
    def chat(self, messages: Messages, **kwargs: Any) -> str | None:
        req_id = kwargs.pop("req_id")
        system, converted = _split_gemini_messages(messages)
        self._log_request(req_id, [{"role": m["role"], "content": m["parts"][0]} for m in converted])
        resp = self._model(system).generate_content(
            converted,
            generation_config=self._config(kwargs),
            request_options=self._request_options(),
        )
        content = _gemini_parts_text(resp, include_code_output=self.include_code_execution_output)
        self._log_response(req_id, content, _usage(resp, "usage_metadata"))
        return content


@dataclass(slots=True)
class GeminiStreamingChatModel(GeminiChatModel):
    @_llm_span("llm.stream")
    def stream(self, messages: Messages, **kwargs: Any) -> Iterator[str]:
        req_id = kwargs.pop("req_id")
        system, converted = _split_gemini_messages(messages)
        self._log_request(req_id, [{"role": m["role"], "content": m["parts"][0]} for m in converted])
        resp = self._model(system).generate_content(
            converted,
            generation_config=self._config(kwargs),
            request_options=self._request_options(),
            stream=True,
        )
        chunks: list[str] = []
        for chunk in resp:
            text = _gemini_parts_text(chunk, include_code_output=self.include_code_execution_output)
            if text:
                chunks.append(text)
                yield text
        self._log_response(req_id, "".join(chunks))


# ---------- Ollama ----------


@dataclass(slots=True)
class OllamaChatModel(_LoggingMixin):
    """Ollama `/api/chat` over httpx."""

    base_url: str = "http://localhost:11434"
    options: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    max_retries: int = 0
    transport: httpx.BaseTransport | None = field(default=None, compare=False, repr=False)

    def _client(self) -> httpx.Client:
        transport = self.transport or httpx.HTTPTransport(retries=self.max_retries)
        return httpx.Client(
            base_url=self.base_url.rstrip("/"),
            headers=self.headers,
            timeout=self.timeout if self.timeout is not None else 120.0,
            transport=transport,
        )

    def _payload(self, messages: Messages, stream: bool, kwargs: dict[str, Any]) -> dict[str, Any]:
        options = {k: v for k, v in {**self.options, **kwargs}.items() if v is not None}
        payload: dict[str, Any] = {"model": self.model, "messages": messages, "stream": stream}
        if options:
            payload["options"] = options
        return payload

    @_llm_span("llm.chat")
    def chat(self, messages: Messages, **kwargs: Any) -> str | None:
        req_id = kwargs.pop("req_id")
        self._log_request(req_id, messages, options=self.options)
        with self._client() as client:
            resp = client.post("/api/chat", json=self._payload(messages, False, kwargs))
            resp.raise_for_status()
            data = resp.json()
        content = (data.get("message") or {}).get("content")
        usage = {k: data[k] for k in ("prompt_eval_count", "eval_count") if k in data} or None
        self._log_response(req_id, content, usage)
        return content


@dataclass(slots=True)
class OllamaStreamingChatModel(OllamaChatModel):
    @_llm_span("llm.stream")
    def stream(self, messages: Messages, **kwargs: Any) -> Iterator[str]:
        req_id = kwargs.pop("req_id")
        self._log_request(req_id, messages, options=self.options)
        chunks: list[str] = []
        with self._client() as client:
            with client.stream("POST", "/api/chat", json=self._payload(messages, True, kwargs)) as resp:
                resp.raise_for_status()
                for line in resp.iter_lines():
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    text = (data.get("message") or {}).get("content")
                    if text:
                        chunks.append(text)
                        yield text
                    if data.get("done"):
                        break
        self._log_response(req_id, "".join(chunks))

