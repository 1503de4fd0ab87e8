"""Lightweight Java compilation-unit model for the fix pipeline.

This is not a compiler. It recognises the package clause, imports, type
declarations and single-statement variable declarations, and it resolves
simple type names against imports, `java.lang` and the types declared in the
same file. That is enough for deciding where a "cannot find symbol" fix
applies and for rewriting the declaration afterwards.

All offsets refer to the original source. Comments and literal contents are
masked out before scanning so they can never produce false matches.

Known gaps: initializers containing nested blocks (anonymous classes, block
lambdas) are not recognised as declarations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import ClassVar, Iterator


class Phase(IntEnum):
    NONE = 0
    PARSED = 1
    RESOLVED = 2


class Kind(str, Enum):
    IMPORT = "import"
    CLASS = "class"
    VARIABLE = "variable"


@dataclass(frozen=True, slots=True)
class Span:
    start: int
    end: int

    def text(self, source: str) -> str:
        return source[self.start:self.end]


@dataclass(frozen=True, slots=True)
class ImportTree:
    kind: ClassVar[Kind] = Kind.IMPORT
    name: str
    static: bool
    span: Span

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    @property
    def on_demand(self) -> bool:
        return self.name.endswith(".*")


@dataclass(frozen=True, slots=True)
class ClassTree:
    kind: ClassVar[Kind] = Kind.CLASS
    name: str
    span: Span


@dataclass(frozen=True, slots=True)
class VariableTree:
    kind: ClassVar[Kind] = Kind.VARIABLE
    name: str
    span: Span
    type_span: Span
    init_span: Span | None
    line: int

    @property
    def value_span(self) -> Span:
        """The expression a fix replaces: the initializer, else the declared type."""
        return self.init_span or self.type_span


Tree = ImportTree | ClassTree | VariableTree


@dataclass(frozen=True, slots=True)
class Diagnostic:
    code: str
    message: str
    symbol: str
    node: VariableTree

    @property
    def line(self) -> int:
        return self.node.line


@dataclass(slots=True)
class CompilationUnit:
    source: str
    masked: str = ""
    package: str | None = None
    package_span: Span | None = None
    imports: list[ImportTree] = field(default_factory=list)
    classes: list[ClassTree] = field(default_factory=list)
    variables: list[VariableTree] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    phase: Phase = Phase.NONE

    def trees(self) -> Iterator[Tree]:
        yield from self.imports
        yield from self.classes
        yield from self.variables

    def variable_at_line(self, line: int) -> VariableTree | None:
        return next((v for v in self.variables if v.line == line), None)

    def variable_named(self, name: str) -> VariableTree | None:
        return next((v for v in self.variables if v.name == name), None)

    def has_import(self, name: str) -> bool:
        return any(_import_key(i.name, i.static) == _import_key(*_split_static(name)) for i in self.imports)


# ---------- masking ----------


def _mask(source: str) -> tuple[str, list[str]]:
    """Blank out comments and literal contents, keeping offsets and newlines."""
    out = list(source)
    errors: list[str] = []
    i, n = 0, len(source)

    def blank(start: int, end: int) -> None:
        for k in range(start, end):
            if out[k] != "\n":
                out[k] = " "

    while i < n:
        two = source[i:i + 2]
        if two == "//":
            end = source.find("\n", i)
            end = n if end == -1 else end
            blank(i, end)
            i = end
        elif two == "/*":
            end = source.find("*/", i + 2)
            if end == -1:
                errors.append("unterminated comment")
                blank(i, n)
                break
            blank(i, end + 2)
            i = end + 2
        elif source.startswith('"""', i):
            end = source.find('"""', i + 3)
            if end == -1:
                errors.append("unterminated text block")
                blank(i, n)
                break
            blank(i + 3, end)
            i = end + 3
        elif source[i] in "\"'":
            quote, j = source[i], i + 1
            while j < n and source[j] != quote and source[j] != "\n":
                j += 2 if source[j] == "\\" else 1
            if j >= n or source[j] != quote:
                errors.append(f"unterminated literal at offset {i}")
                blank(i + 1, min(j, n))
                i = j
                continue
            blank(i + 1, j)
            i = j + 1
        else:
            i += 1
    return "".join(out), errors


def _balance_errors(masked: str) -> list[str]:
    pairs = {")": "(", "]": "[", "}": "{"}
    stack: list[str] = []
    for ch in masked:
        if ch in "([{":
            stack.append(ch)
        elif ch in pairs:
            if not stack or stack[-1] != pairs[ch]:
                return [f"unbalanced '{ch}'"]
            stack.pop()
    return [f"unclosed '{stack[-1]}'"] if stack else []


# ---------- parsing ----------

_PACKAGE = re.compile(r"^[ \t]*package\s+(?P<name>[\w$.]+)\s*;", re.MULTILINE)
_IMPORT = re.compile(r"^[ \t]*import\s+(?P<static>static\s+)?(?P<name>[\w$.]+(?:\.\*)?)\s*;", re.MULTILINE)
_CLASS = re.compile(r"\b(?:class|interface|enum|record)\s+(?P<name>[A-Za-z_$][\w$]*)")
_VARIABLE = re.compile(
    r"(?:^|(?<=[;{}]))[ \t]*"
    r"(?P<decl>"
    r"(?:@[\w$.]+(?:\([^()]*\))?\s+)*"
    r"(?:(?:public|protected|private|static|final|transient|volatile)\s+)*"
    r"(?P<type>[A-Za-z_$][\w$]*(?:\s*\.\s*[A-Za-z_$][\w$]*)*(?:\s*<[^;=(){}]*>)?(?:\s*\[\s*\])*)"
    r"\s+(?P<name>[A-Za-z_$][\w$]*)\s*"
    r"(?:=\s*(?P<init>[^;]+?))?\s*;)",
    re.MULTILINE,
)

_NOT_A_TYPE = frozenset(
    {
        "return", "throw", "new", "package", "import", "else", "case", "yield",
        "assert", "break", "continue", "do", "goto", "throws", "extends",
        "implements", "class", "interface", "enum", "record", "instanceof",
    }
)


def _split_static(name: str) -> tuple[str, bool]:
    if name.startswith("static "):
        return name[len("static "):].strip(), True
    return name, False


def _import_key(name: str, static: bool) -> tuple[str, bool]:
    return name.replace(" ", ""), static


def _statement_start(m: re.Match[str]) -> int:
    return m.start() + len(m.group(0)) - len(m.group(0).lstrip(" \t"))


def _balanced(text: str) -> bool:
    return not _balance_errors(text)


def parse(source: str) -> CompilationUnit:
    """Scan `source` into a PARSED compilation unit (structural errors recorded, not raised)."""
    masked, errors = _mask(source)
    errors.extend(_balance_errors(masked))
    unit = CompilationUnit(source=source, masked=masked, errors=errors, phase=Phase.PARSED)

    pkg = _PACKAGE.search(masked)
    if pkg:
        unit.package = pkg.group("name")
        unit.package_span = Span(_statement_start(pkg), pkg.end())

    for m in _IMPORT.finditer(masked):
        unit.imports.append(
            ImportTree(name=m.group("name"), static=bool(m.group("static")), span=Span(_statement_start(m), m.end()))
        )

    for m in _CLASS.finditer(masked):
        unit.classes.append(ClassTree(name=m.group("name"), span=Span(m.start(), m.end())))

    for m in _VARIABLE.finditer(masked):
        type_text = m.group("type")
        if type_text.split(".")[0].split("<")[0].strip() in _NOT_A_TYPE or m.group("name") in _NOT_A_TYPE:
            continue
        init = m.group("init")
        if init is not None and not _balanced(init):
            continue
        unit.variables.append(
            VariableTree(
                name=m.group("name"),
                span=Span(m.start("decl"), m.end("decl")),
                type_span=Span(m.start("type"), m.end("type")),
                init_span=Span(m.start("init"), m.end("init")) if init is not None else None,
                line=source.count("\n", 0, m.start("decl")) + 1,
            )
        )
    return unit


# ---------- resolution ----------

JAVA_LANG = frozenset(
    {
        "Object", "String", "StringBuilder", "StringBuffer", "CharSequence", "Class",
        "Integer", "Long", "Short", "Byte", "Double", "Float", "Boolean", "Character",
        "Number", "Math", "System", "Thread", "Runnable", "Iterable", "Comparable",
        "Enum", "Record", "Void", "Exception", "RuntimeException", "Error", "Throwable",
        "IllegalArgumentException", "IllegalStateException", "NullPointerException",
        "UnsupportedOperationException", "IndexOutOfBoundsException", "Override",
        "Deprecated", "FunctionalInterface", "SuppressWarnings", "AutoCloseable",
        "Cloneable", "Process", "ProcessBuilder", "Runtime", "ThreadLocal",
    }
)
PRIMITIVES = frozenset({"boolean", "byte", "char", "short", "int", "long", "float", "double", "void", "var"})

_TYPE_NAME = re.compile(r"(?<![\w$.])([A-Z][\w$]*)")
_NEW_NAME = re.compile(r"\bnew\s+([A-Z][\w$]*)")
_STATIC_REF = re.compile(r"(?<![\w$.])([A-Z][\w$]*)\s*\.\s*[A-Za-z_$]")


def _referenced_types(unit: CompilationUnit, node: VariableTree) -> list[str]:
    masked = unit.masked
    names = _TYPE_NAME.findall(node.type_span.text(masked))
    if node.init_span:
        init = node.init_span.text(masked)
        names += _NEW_NAME.findall(init) + _STATIC_REF.findall(init)
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def resolve(unit: CompilationUnit) -> CompilationUnit:
    """Bind simple type names; return a RESOLVED copy, or the unit unchanged if it has errors."""
    if unit.phase >= Phase.RESOLVED or unit.errors:
        return unit
    known = set(JAVA_LANG) | {c.name for c in unit.classes}
    known |= {i.simple_name for i in unit.imports if not i.on_demand}
    on_demand = any(i.on_demand and not i.static for i in unit.imports)
    diagnostics: list[Diagnostic] = []
    for node in unit.variables:
        for name in _referenced_types(unit, node):
            # Single-letter names are taken to be type variables; on-demand
            # imports may supply anything.
            if name in known or len(name) == 1 or on_demand:
                continue
            diagnostics.append(
                Diagnostic(
                    code="compiler.err.cant.resolve",
                    message=f"cannot find symbol: {name}",
                    symbol=name,
                    node=node,
                )
            )
    return replace(unit, diagnostics=diagnostics, phase=Phase.RESOLVED)
