""" Variable Fix Agent: repair a broken variable declaration with an LLM. """

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import threading
from typing import Any, Callable

from pydantic import ValidationError

from core.chat_models import ChatModel, StreamingChatModel
from core.json_utils import parse_json_object
from core.llm_factory import get_chat_model
from core.models import FixAction, RepairRequest, RepairResponse
from core.obs import Logger, NullLogger, with_span
from editor.document import NodeHandle, SourceDocument, StaleDocumentError, TransactionError
from editor.java_source import Diagnostic, Phase, VariableTree, parse
from hints.prompts import build_variable_fix_messages

logger = logging.getLogger(__name__)


class VariableFixError(RuntimeError):
    """Base error for the variable fix."""


class RepairParseError(VariableFixError):
    """Raised when the model output cannot be parsed or validated."""


class RepairOutcome(str, Enum):
    APPLIED = "applied"
    NOT_APPLICABLE = "not_applicable"
    DISCARDED = "discarded"


@dataclass(frozen=True, slots=True)
class VariableFix:
    """An offered fix for one variable declaration."""

    handle: NodeHandle
    action: FixAction
    compilation_error: str | None = None
    action_title_param: str = ""

    def text(self) -> str:
        return f"Fix variable '{self.action_title_param}' using AI"

    @classmethod
    def for_diagnostic(cls, handle: NodeHandle, diagnostic: Diagnostic) -> "VariableFix":
        return cls(
            handle=handle,
            action=FixAction.COMPILATION_ERROR,
            compilation_error=diagnostic.message,
            action_title_param=diagnostic.node.name,
        )

    @classmethod
    def for_action(cls, handle: NodeHandle, action: FixAction) -> "VariableFix":
        """A fix offered from an explicit action rather than a diagnostic.

        No such action is implemented yet, so the agent treats it as not applicable.
        """
        return cls(handle=handle, action=action, action_title_param=handle.name or "")


ModelFactory = Callable[[], "ChatModel | StreamingChatModel"]


def _complete(model: Any, messages: list[dict[str, str]]) -> str | None:
    if hasattr(model, "chat"):
        return model.chat(messages)
    return "".join(model.stream(messages))


def _attempt_fields(*args: Any, **kwargs: Any) -> dict[str, Any]:
    fix: VariableFix = kwargs.get("fix") or args[1]
    return {
        "variable": fix.action_title_param,
        "action": fix.action.value,
        "document_id": fix.handle.document_id,
        "version": fix.handle.version,
    }


@dataclass(slots=True)
class VariableFixAgent:
    """Single-responsibility agent for one variable fix attempt (sync).

    Responsibilities:
    - Check the document is resolved and the fix targets a variable declaration.
    - Ask a freshly built chat model for a replacement.
    - Parse strict JSON and validate it into RepairResponse.
    - Apply imports and the rewrite in one document transaction.

    Returns a RepairOutcome; malformed model output raises RepairParseError and
    commit failures raise TransactionError.
    """

    model_factory: ModelFactory = get_chat_model
    obs: Logger = field(default_factory=NullLogger)

    def build_messages(self, fix: VariableFix, declaration: str) -> list[dict[str, str]]:
        request = RepairRequest(
            declaration=declaration,
            diagnostic=fix.compilation_error,
            action=fix.action,
        )
        return build_variable_fix_messages(request)

    def parse_response(self, raw: str) -> RepairResponse:
        """Convert raw model output into a RepairResponse."""
        try:
            data = parse_json_object(raw, RepairParseError)
        except RepairParseError:
            logger.error("VariableFixAgent: failed to parse JSON")
            raise
        try:
            response: RepairResponse = RepairResponse.model_validate(data)
        except ValidationError as e:
            logger.exception("VariableFixAgent: validation failed")
            raise RepairParseError(f"Validation failed: {e}") from e
        return response

    @with_span("fix.attempt", logger_attr="obs", fields_fn=_attempt_fields)
    def run(
        self,
        fix: VariableFix,
        document: SourceDocument,
        cancel: threading.Event | None = None,
    ) -> RepairOutcome:
        cancelled = cancel.is_set if cancel is not None else (lambda: False)
        if cancelled() or document.version != fix.handle.version:
            return RepairOutcome.DISCARDED

        copy = document.working_copy()
        if copy.to_phase(Phase.RESOLVED) < Phase.RESOLVED:
            logger.info("VariableFixAgent: %s does not resolve, skipping", document.name)
            return RepairOutcome.NOT_APPLICABLE

        node = copy.resolve_handle(fix.handle)
        if not isinstance(node, VariableTree) or fix.action is not FixAction.COMPILATION_ERROR:
            return RepairOutcome.NOT_APPLICABLE
        if fix.compilation_error is None:
            return RepairOutcome.NOT_APPLICABLE

        messages = self.build_messages(fix, node.span.text(copy.text))
        raw = _complete(self.model_factory(), messages)
        if raw is None or not raw.strip():
            logger.info("VariableFixAgent: empty model response for %s", node.name)
            return RepairOutcome.NOT_APPLICABLE
        if cancelled():
            return RepairOutcome.DISCARDED

        response = self.parse_response(raw)
        try:
            return self._apply(fix, document, response, cancelled)
        except StaleDocumentError:
            logger.info("VariableFixAgent: %s changed during the request, discarding", document.name)
            return RepairOutcome.DISCARDED

    def _apply(
        self,
        fix: VariableFix,
        document: SourceDocument,
        response: RepairResponse,
        cancelled: Callable[[], bool],
    ) -> RepairOutcome:
        with document.edit(expected_version=fix.handle.version) as wc:
            if cancelled():
                return RepairOutcome.DISCARDED
            node = wc.resolve_handle(fix.handle)
            if not isinstance(node, VariableTree):
                raise TransactionError(f"declaration '{fix.action_title_param}' no longer exists")
            added = wc.add_imports(response.imports)
            wc.rewrite(node.value_span, response.variable_content)
            if parse(wc.apply()).variable_named(node.name) is None:
                raise TransactionError(f"rewriting '{node.name}' would not leave a declaration of it")
        logger.info(
            "VariableFixAgent: fixed %s imports_added=%d",
            fix.action_title_param,
            len(added),
        )
        return RepairOutcome.APPLIED
