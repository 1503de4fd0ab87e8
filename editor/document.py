"""Editable source document with versioned handles and single-writer transactions.

A `SourceDocument` owns the current text and a lock. Readers take a
`WorkingCopy` snapshot; writers go through `SourceDocument.edit()`, which
stages changes on a working copy and commits them in one step when the block
exits normally. Any exception inside the block (or while committing) leaves
the document exactly as it was.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator

from editor.java_source import (
    CompilationUnit,
    Kind,
    Phase,
    Span,
    Tree,
    parse,
    resolve,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[["SourceDocument"], None]


class TransactionError(RuntimeError):
    """An edit could not be committed; nothing was applied."""


class StaleDocumentError(TransactionError):
    """The document changed after the handle or snapshot was taken."""


@dataclass(frozen=True, slots=True)
class NodeHandle:
    """Stable reference to a tree node in one version of one document."""

    document_id: str
    version: int
    kind: Kind
    span: Span
    name: str | None = None


@dataclass(frozen=True, slots=True)
class _Edit:
    span: Span
    text: str


class WorkingCopy:
    """A snapshot of a document plus the edits staged against it."""

    def __init__(self, document_id: str, text: str, version: int) -> None:
        self.document_id = document_id
        self.version = version
        self._text = text
        self._unit: CompilationUnit = parse(text)
        self._edits: list[_Edit] = []
        self._added_imports: list[str] = []

    @property
    def text(self) -> str:
        return self._text

    @property
    def unit(self) -> CompilationUnit:
        return self._unit

    @property
    def edits(self) -> tuple[_Edit, ...]:
        """Staged edits, including one insertion for any added imports."""
        if not self._added_imports:
            return tuple(self._edits)
        return (*self._edits, self._import_edit())

    def to_phase(self, phase: Phase) -> Phase:
        """Advance the snapshot towards `phase`; returns the phase actually reached."""
        if phase >= Phase.RESOLVED and self._unit.phase < Phase.RESOLVED:
            self._unit = resolve(self._unit)
        return self._unit.phase

    def handle_for(self, node: Tree) -> NodeHandle:
        return NodeHandle(
            document_id=self.document_id,
            version=self.version,
            kind=node.kind,
            span=node.span,
            name=getattr(node, "name", None),
        )

    def resolve_handle(self, handle: NodeHandle) -> Tree | None:
        if handle.document_id != self.document_id or handle.version != self.version:
            return None
        return next(
            (t for t in self._unit.trees() if t.kind == handle.kind and t.span == handle.span),
            None,
        )

    # ---- staging ----

    def add_imports(self, names: Iterable[str]) -> list[str]:
        """Stage import statements for names not already imported. Returns those staged."""
        added: list[str] = []
        for name in names:
            if self._unit.has_import(name) or name in self._added_imports:
                continue
            self._added_imports.append(name)
            added.append(name)
        return added

    def _import_edit(self) -> _Edit:
        pos, prefix, suffix = self._import_anchor()
        block = "".join(f"import {name};\n" for name in self._added_imports)
        return _Edit(Span(pos, pos), prefix + block + suffix)

    def _import_anchor(self) -> tuple[int, str, str]:
        """Where new imports go: after the last import, else after the package clause, else at the top."""
        text = self._text
        unit = self._unit
        if unit.imports:
            end = unit.imports[-1].span.end
            newline = text.find("\n", end)
            if newline == -1:
                return len(text), "\n", ""
            return newline + 1, "", ""
        if unit.package_span is not None:
            end = unit.package_span.end
            newline = text.find("\n", end)
            if newline == -1:
                return len(text), "\n\n", ""
            return newline + 1, "\n", ""
        return 0, "", "\n"

    def rewrite(self, span: Span, replacement: str) -> None:
        if not (0 <= span.start <= span.end <= len(self._text)):
            raise TransactionError(f"span {span} is outside the document")
        self._edits.append(_Edit(span, replacement))

    def apply(self) -> str:
        """Return the text with all staged edits applied; overlapping edits are rejected."""
        ordered = sorted(self.edits, key=lambda e: (e.span.start, e.span.end))
        for prev, cur in zip(ordered, ordered[1:]):
            if cur.span.start < prev.span.end:
                raise TransactionError(f"overlapping edits at {prev.span} and {cur.span}")
        text = self._text
        for edit in reversed(ordered):
            text = text[:edit.span.start] + edit.text + text[edit.span.end:]
        return text


class SourceDocument:
    """The host document: current text, version counter and an exclusive edit lock."""

    def __init__(self, text: str, name: str = "Main.java") -> None:
        self.name = name
        self.id = uuid.uuid4().hex
        self._lock = threading.RLock()
        self._text = text
        self._version = 0
        self._listeners: list[ChangeListener] = []

    @classmethod
    def from_path(cls, path: str | Path) -> "SourceDocument":
        path = Path(path)
        return cls(path.read_text(encoding="utf-8"), name=path.name)

    @property
    def text(self) -> str:
        with self._lock:
            return self._text

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def working_copy(self) -> WorkingCopy:
        with self._lock:
            return WorkingCopy(self.id, self._text, self._version)

    def add_change_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(self)

    def replace_text(self, text: str) -> None:
        """Replace the whole text, as an external edit would."""
        with self._lock:
            self._text = text
            self._version += 1
        self._notify()

    @contextmanager
    def edit(self, expected_version: int | None = None) -> Iterator[WorkingCopy]:
        """Exclusive edit scope. Staged edits commit together on normal exit.

        Raises StaleDocumentError if `expected_version` no longer matches, and
        TransactionError if the staged edits cannot be applied cleanly.
        """
        with self._lock:
            if expected_version is not None and expected_version != self._version:
                raise StaleDocumentError(
                    f"{self.name}: expected version {expected_version}, found {self._version}"
                )
            copy = WorkingCopy(self.id, self._text, self._version)
            try:
                yield copy
            except BaseException:
                logger.info("%s: edit rolled back", self.name)
                raise
            committed = self._commit(copy)
        if committed:
            self._notify()

    def _commit(self, copy: WorkingCopy) -> bool:
        if not copy.edits:
            return False
        # a nested edit on this thread may have committed since the copy was taken
        if copy.version != self._version:
            raise StaleDocumentError(
                f"{self.name}: edit started at version {copy.version}, found {self._version}"
            )
        new_text = copy.apply()
        if parse(new_text).errors and not parse(copy.text).errors:
            raise TransactionError(f"{self.name}: edit would leave the document unparsable")
        self._text = new_text
        self._version += 1
        logger.info("%s: committed %d edit(s), now version %d", self.name, len(copy.edits), self._version)
        return True

    def save(self, path: str | Path) -> None:
        Path(path).write_text(self.text, encoding="utf-8")
