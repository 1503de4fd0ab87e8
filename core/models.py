from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenAIProvider(str, Enum):
    """Provider variants a chat model can be built for."""

    OPEN_AI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    MISTRAL = "mistral"
    LOCAL_AI = "localai"
    OLLAMA = "ollama"

    @classmethod
    def parse(cls, value: "str | GenAIProvider") -> "GenAIProvider":
        if isinstance(value, GenAIProvider):
            return value
        key = value.strip().lower().replace("-", "_")
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown provider '{value}'")


class FixAction(str, Enum):
    """Kinds of repair the variable fix knows how to perform."""

    COMPILATION_ERROR = "compilation_error"


# ==== Repair request / response ====

class RepairRequest(BaseModel):
    """What the engine sends to the model for one broken declaration."""

    declaration: str
    diagnostic: str | None = None
    action: FixAction = FixAction.COMPILATION_ERROR


_IMPORT_SPEC = re.compile(r"^(static\s+)?[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*(\.\*)?$")


class RepairResponse(BaseModel):
    """Structured model answer: imports to add plus the replacement expression."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    imports: list[str] = Field(..., description="Fully qualified imports to add, in order.")
    variable_content: str = Field(
        ...,
        alias="variableContent",
        description="Replacement text for the declaration's value or type expression.",
    )

    @field_validator("imports")
    @classmethod
    def _check_imports(cls, value: list[str]) -> list[str]:
        cleaned: list[str] = []
        for item in value:
            spec = item.strip()
            if spec.startswith("import "):
                spec = spec[len("import "):].strip()
            spec = spec.rstrip(";").strip()
            if not _IMPORT_SPEC.match(spec):
                raise ValueError(f"not an import specifier: {item!r}")
            cleaned.append(spec)
        return cleaned

    @field_validator("variable_content")
    @classmethod
    def _check_content(cls, value: str) -> str:
        value = value.strip().rstrip(";").rstrip()
        if not value:
            raise ValueError("variableContent must be non-empty")
        return value
