"""Background worker that offers and runs variable fixes for a document.

The orchestrator scans a resolved document for unresolved-symbol diagnostics
on variable declarations and offers one `VariableFix` per declaration.
Invoking a fix runs `VariableFixAgent.run` on a thread pool so the model call
never blocks the caller. Any committed change to the document cancels the
fixes still pending for it; results computed against an old version are
discarded by the agent.
"""

from __future__ import annotations

from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import threading
from typing import Protocol

from core.obs import JsonStdoutLogger, Logger
from editor.document import SourceDocument
from editor.java_source import Phase, Span
from hints.variable_fix import RepairOutcome, VariableFix, VariableFixAgent

logger = logging.getLogger(__name__)


class FixNotifier(Protocol):
    def failed(self, fix: VariableFix, error: BaseException) -> None: ...


@dataclass(slots=True)
class LoggingFixNotifier:
    """Reports failed fixes as `fix.failed` events."""

    obs: Logger = field(default_factory=lambda: JsonStdoutLogger(service="fix"))

    def failed(self, fix: VariableFix, error: BaseException) -> None:
        self.obs.error(
            "fix.failed",
            title=fix.text(),
            document_id=fix.handle.document_id,
            error_type=type(error).__name__,
            error=str(error),
        )


@dataclass(slots=True)
class FixTask:
    """Handle on one submitted fix."""

    fix: VariableFix
    future: Future
    cancel_event: threading.Event

    def cancel(self) -> None:
        self.cancel_event.set()
        self.future.cancel()

    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: float | None = None) -> RepairOutcome:
        """Wait for the outcome. Errors reported to the notifier are re-raised here."""
        try:
            return self.future.result(timeout=timeout)
        except CancelledError:
            return RepairOutcome.DISCARDED


class FixOrchestrator:
    """Offers fixes for documents and runs them in the background."""

    def __init__(
        self,
        agent: VariableFixAgent | None = None,
        notifier: FixNotifier | None = None,
        max_workers: int = 2,
        executor: Executor | None = None,
    ) -> None:
        self.agent = agent or VariableFixAgent()
        self.notifier = notifier or LoggingFixNotifier()
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fix")
        self._lock = threading.Lock()
        self._tasks: dict[VariableFix, FixTask] = {}
        # documents by id; a fix finds its document through its handle
        self._watched: dict[str, SourceDocument] = {}
        self._running = threading.local()

    # ---- offering ----

    def offer_fixes(self, document: SourceDocument) -> list[VariableFix]:
        """Return one fix per variable declaration with an unresolved symbol."""
        self._watch(document)
        copy = document.working_copy()
        if copy.to_phase(Phase.RESOLVED) < Phase.RESOLVED:
            return []
        fixes: list[VariableFix] = []
        seen: set[Span] = set()
        for diagnostic in copy.unit.diagnostics:
            if diagnostic.node.span in seen:
                continue
            seen.add(diagnostic.node.span)
            fixes.append(VariableFix.for_diagnostic(copy.handle_for(diagnostic.node), diagnostic))
        return fixes

    def _watch(self, document: SourceDocument) -> None:
        with self._lock:
            if document.id in self._watched:
                return
            self._watched[document.id] = document
        document.add_change_listener(self._on_document_changed)

    def _on_document_changed(self, document: SourceDocument) -> None:
        current = getattr(self._running, "task", None)
        with self._lock:
            pending = [t for f, t in self._tasks.items() if f.handle.document_id == document.id]
        for task in pending:
            # the task whose own commit raised this change is left alone
            if task is not current and not task.done():
                logger.info("FixOrchestrator: %s changed, cancelling '%s'", document.name, task.fix.text())
                task.cancel()

    # ---- running ----

    def invoke(self, fix: VariableFix, document: SourceDocument | None = None) -> FixTask:
        """Run the fix on the background worker and return its task."""
        with self._lock:
            document = document or self._watched.get(fix.handle.document_id)
        if document is None:
            raise ValueError(f"no document known for fix '{fix.text()}'")
        self._watch(document)
        # registered before submission so a change committed by any worker sees it
        task = FixTask(fix=fix, future=Future(), cancel_event=threading.Event())
        with self._lock:
            self._tasks[fix] = task
        task.future.add_done_callback(lambda _f: self._forget(fix, task))
        try:
            self._executor.submit(self._run, task, document)
        except RuntimeError:
            task.future.cancel()
            raise
        return task

    def _run(self, task: FixTask, document: SourceDocument) -> None:
        if not task.future.set_running_or_notify_cancel():
            return
        self._running.task = task
        try:
            outcome = self.agent.run(task.fix, document, task.cancel_event)
        except Exception as exc:
            self.notifier.failed(task.fix, exc)
            task.future.set_exception(exc)
        else:
            task.future.set_result(outcome)
        finally:
            self._running.task = None

    def _forget(self, fix: VariableFix, task: FixTask) -> None:
        with self._lock:
            if self._tasks.get(fix) is task:
                del self._tasks[fix]

    def dismiss(self, fix: VariableFix) -> None:
        """Cancel the pending task for `fix`, if any."""
        with self._lock:
            task = self._tasks.get(fix)
        if task is not None:
            task.cancel()

    def pending(self) -> list[FixTask]:
        with self._lock:
            return [t for t in self._tasks.values() if not t.done()]

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            tasks = list(self._tasks.values())
            watched = list(self._watched.values())
            self._watched.clear()
        for task in tasks:
            task.cancel()
        for document in watched:
            document.remove_change_listener(self._on_document_changed)
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "FixOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
