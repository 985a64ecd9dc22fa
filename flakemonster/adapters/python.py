"""
Python adapter.

Uses the standard ``ast`` module purely as a locator: line numbers and byte
columns of the statements inside every ``async def`` body. Module scope is
never a candidate since ``await`` is not valid there.

A Python suite cannot be split across lines the way a JavaScript block can,
so a statement that shares its line with other code (``async def f(): ...``,
``a = 1; b = 2``) keeps its position in the body but is never spliced.
"""

from __future__ import annotations

import ast
import codecs

from flakemonster.adapters.base import LanguageAdapter, RuntimeInfo, SourceParseError
from flakemonster.injector import (
    DELAY_IDENTIFIER,
    ContainerBody,
    InjectionSyntax,
    SourceLayout,
    StatementSite,
)
from flakemonster.profile import KIND_RETURN, KIND_STATEMENT, KIND_THROW, InjectOptions
from flakemonster.recovery import RecoveryClassifier
from flakemonster.runtime import runtime_path

RUNTIME_MODULE = "flake_monster_runtime"
RUNTIME_FILENAME = f"{RUNTIME_MODULE}.py"

_FUNCTION_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)


def _line_offsets(source: bytes) -> list[int]:
    """Byte offset of the start of every line, matching ast's line numbering."""
    offsets = [0]
    for line in source.splitlines(keepends=True):
        offsets.append(offsets[-1] + len(line))
    return offsets


def _is_docstring(node: ast.stmt) -> bool:
    return (
        isinstance(node, ast.Expr)
        and isinstance(node.value, ast.Constant)
        and isinstance(node.value.value, str)
    )


def _kind(node: ast.stmt) -> str:
    if isinstance(node, ast.Return):
        return KIND_RETURN
    if isinstance(node, ast.Raise):
        return KIND_THROW
    return KIND_STATEMENT


def _is_async_generator(node: ast.AsyncFunctionDef) -> bool:
    """Look for yield in the function's own scope, not in nested ones."""
    stack: list[ast.AST] = list(node.body)
    while stack:
        child = stack.pop()
        if isinstance(child, (ast.Yield, ast.YieldFrom)):
            return True
        if isinstance(child, _FUNCTION_SCOPES):
            continue
        stack.extend(ast.iter_child_nodes(child))
    return False


class _AsyncBodyCollector(ast.NodeVisitor):
    """Collects async function bodies in source order."""

    def __init__(self, source: bytes, options: InjectOptions) -> None:
        self.source = source
        self.options = options
        self.line_offsets = _line_offsets(source)
        self.bodies: list[ContainerBody] = []
        self.has_runtime_import = False

    def _site(self, node: ast.stmt) -> StatementSite:
        decorators = getattr(node, "decorator_list", None)
        if decorators:
            # A decorated definition starts at its first decorator. The
            # decorator expression begins after the "@", so point at the
            # line's first non-blank character instead.
            line = min(d.lineno for d in decorators)
            line_start = self.line_offsets[line - 1]
            text = self.source[line_start : self.line_offsets[line]]
            column = len(text) - len(text.lstrip(b" \t\f"))
        else:
            line = node.lineno
            line_start = self.line_offsets[line - 1]
            column = node.col_offset
        return StatementSite(kind=_kind(node), offset=line_start + column, line=line, column=column)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        if not (self.options.skip_generators and _is_async_generator(node)):
            body = node.body[1:] if _is_docstring(node.body[0]) else node.body
            if body:
                self.bodies.append(ContainerBody(node.name, [self._site(stmt) for stmt in body]))
        self.generic_visit(node)

    def visit_Import(self, node: ast.Import) -> None:
        if any(alias.name.split(".")[-1] == RUNTIME_MODULE for alias in node.names):
            self.has_runtime_import = True

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.module and node.module.split(".")[-1] == RUNTIME_MODULE:
            self.has_runtime_import = True


def _import_anchor(tree: ast.Module, source: bytes, line_offsets: list[int]) -> int:
    """
    End of the line holding the last leading import (after a module docstring
    and ``__future__`` imports), or the end of a leading comment header.
    """
    body = tree.body
    start = 1 if body and _is_docstring(body[0]) else 0
    anchor_line = body[0].end_lineno if start else None
    for node in body[start:]:
        if not isinstance(node, (ast.Import, ast.ImportFrom)):
            break
        anchor_line = node.end_lineno

    if anchor_line is None:
        # Keep shebang and encoding lines first.
        for number, line in enumerate(source.splitlines(), start=1):
            if not line.removeprefix(codecs.BOM_UTF8).lstrip().startswith(b"#"):
                break
            anchor_line = number
    if anchor_line is None:
        return 0
    line_end = line_offsets[anchor_line]
    return len(source[:line_end].rstrip(b"\r\n"))


def locate_statements(source: bytes, options: InjectOptions) -> SourceLayout:
    """Find every injection candidate in a Python module."""
    try:
        tree = ast.parse(source, filename=options.file_path or "<unknown>")
    except (SyntaxError, ValueError) as e:
        raise SourceParseError(f"{type(e).__name__}: {e}") from e

    collector = _AsyncBodyCollector(source, options)
    collector.visit(tree)
    return SourceLayout(
        bodies=collector.bodies,
        import_anchor=_import_anchor(tree, source, collector.line_offsets),
        has_runtime_import=collector.has_runtime_import,
    )


class PythonAdapter(LanguageAdapter):
    """Handles .py files; delays go into ``async def`` bodies only."""

    adapter_id = "python"
    display_name = "Python (asyncio)"
    file_extensions = (".py",)
    syntax = InjectionSyntax(
        comment="# {}",
        call=f"await {DELAY_IDENTIFIER}({{}})",
        allow_inline=False,
    )

    def make_classifier(self) -> RecoveryClassifier:
        return RecoveryClassifier(RUNTIME_MODULE, comment_prefixes=("#",))

    def locate(self, source: bytes, options: InjectOptions) -> SourceLayout:
        return locate_statements(source, options)

    def runtime_import_line(self, file_path: str) -> str:
        return f"from {RUNTIME_MODULE} import {DELAY_IDENTIFIER}"

    def runtime_info(self) -> RuntimeInfo:
        return RuntimeInfo(source_path=runtime_path(RUNTIME_FILENAME), file_name=RUNTIME_FILENAME)
