"""Static catalog of known chat models, their provider and per-token pricing."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from core.models import GenAIProvider

DEFAULT_MODEL = "gpt-4o-mini"


@dataclass(frozen=True, slots=True)
class GenAIModel:
    provider: GenAIProvider
    name: str
    description: str
    input_price: float  # USD per 1M input tokens
    output_price: float  # USD per 1M output tokens

    @property
    def formatted_info(self) -> str:
        return f"{self.name}: {self.description}"

    def estimate_cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens * self.input_price + output_tokens * self.output_price) / 1_000_000

    def __str__(self) -> str:
        return self.name


def _entries(*models: GenAIModel) -> Mapping[str, GenAIModel]:
    return MappingProxyType({m.name: m for m in models})


_G, _O, _A, _M = (
    GenAIProvider.GOOGLE,
    GenAIProvider.OPEN_AI,
    GenAIProvider.ANTHROPIC,
    GenAIProvider.MISTRAL,
)

MODELS: Mapping[str, GenAIModel] = _entries(
    GenAIModel(_G, "gemini-1.5-flash", "A fast and cost-effective model for rapid assessments. Highly recommended.", 0.075, 0.30),
    GenAIModel(_G, "gemini-1.5-pro", "A professional version of the Gemini model with enhanced capabilities.", 1.25, 5.00),
    GenAIModel(_O, "gpt-4o-mini", "Highly recommended for its excellent balance of performance and cost.", 0.150, 0.600),
    GenAIModel(_O, "o1-mini", "A compact model for diverse tasks.", 3.00, 12.00),
    GenAIModel(_O, "chatgpt-4o-latest", "Latest ChatGPT model offering powerful capabilities.", 5.00, 15.00),
    GenAIModel(_O, "gpt-4o", "The premium choice for complex tasks requiring deep analysis and understanding.", 2.50, 10.00),
    GenAIModel(_A, "claude-3-5-sonnet-20240620", "A sonnet model offering refined conversational capabilities.", 3.00, 15.00),
    GenAIModel(_A, "claude-3-haiku-20240307", "A haiku model designed for concise and creative expression.", 0.25, 1.25),
    GenAIModel(_M, "open-codestral-mamba", "The first Mamba 2 open-source model, ideal for diverse tasks.", 0.0, 0.0),
    GenAIModel(_M, "pixtral-12b", "Version-capable small model.", 0.15, 0.15),
    GenAIModel(_M, "mistral-nemo", "State-of-the-art Mistral model trained specifically for code tasks.", 0.15, 0.15),
    GenAIModel(_M, "pixtral-12b-2409", "A 12B model with image understanding capabilities in addition to text.", 0.0, 0.0),
    GenAIModel(_M, "open-mistral-nemo", "A multilingual open-source model released in July 2024.", 0.0, 0.0),
    GenAIModel(_M, "mistral-large-latest", "Top-tier reasoning for high-complexity tasks, for your most sophisticated needs.", 2.00, 6.00),
    GenAIModel(_M, "mistral-small-latest", "Cost-efficient, fast, and reliable option for translation, summarization, and sentiment analysis.", 0.20, 0.60),
    GenAIModel(_M, "codestral-latest", "State-of-the-art Mistral model trained specifically for code tasks.", 0.20, 0.60),
    GenAIModel(_M, "mistral-embed", "State-of-the-art semantic model for extracting text representations.", 0.10, 0.00),
    GenAIModel(_M, "ministral-3b-latest", "Most efficient edge model.", 0.04, 0.04),
    GenAIModel(_M, "ministral-8b-latest", "Powerful model for on-device use cases.", 0.10, 0.10),
)


def find_by_name(name: str) -> GenAIModel | None:
    """Exact-match lookup; returns None for unknown models."""
    return MODELS.get(name)


def models_for_provider(provider: GenAIProvider) -> list[GenAIModel]:
    return sorted((m for m in MODELS.values() if m.provider is provider), key=lambda m: m.name)
