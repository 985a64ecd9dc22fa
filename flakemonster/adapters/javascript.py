"""
JavaScript (ESM) adapter.

Statement boundaries come from a tree-sitter parse of the original bytes. The
tree is only read, never edited or printed back, so the user's formatting
survives injection untouched.

Candidates are the module's top-level statements after the leading imports
(top-level await is valid in ES modules) and the block bodies of async
functions, function expressions, methods and arrows.
"""

from __future__ import annotations

import tree_sitter_javascript
from tree_sitter import Language, Node, Parser

from flakemonster.adapters.base import LanguageAdapter, RuntimeInfo, SourceParseError
from flakemonster.injector import (
    ANONYMOUS,
    ARROW,
    DELAY_IDENTIFIER,
    TOP_LEVEL,
    ContainerBody,
    InjectionSyntax,
    SourceLayout,
    StatementSite,
)
from flakemonster.profile import KIND_RETURN, KIND_STATEMENT, KIND_THROW, InjectOptions
from flakemonster.recovery import RecoveryClassifier
from flakemonster.runtime import runtime_path

RUNTIME_FILENAME = "flake-monster.runtime.js"
RUNTIME_FRAGMENT = "flake-monster.runtime"

JS_LANGUAGE = Language(tree_sitter_javascript.language())

# "function" is the pre-0.21 grammar name for function expressions.
FUNCTION_TYPES = frozenset(
    {
        "function_declaration",
        "function_expression",
        "function",
        "generator_function_declaration",
        "generator_function",
        "method_definition",
        "arrow_function",
    }
)
GENERATOR_TYPES = frozenset({"generator_function_declaration", "generator_function"})
HOISTED_TYPES = frozenset({"function_declaration", "generator_function_declaration"})
NON_STATEMENT_TYPES = frozenset({"comment", "html_comment", "hash_bang_line"})

_STATEMENT_KINDS = {
    "return_statement": KIND_RETURN,
    "throw_statement": KIND_THROW,
}


def compute_runtime_import_path(file_path: str) -> str:
    """
    Relative import path from a project file to the runtime at the root.

    ``"app.js"`` gives ``"./flake-monster.runtime.js"``, ``"src/user.js"`` gives
    ``"../flake-monster.runtime.js"``.
    """
    parts = [part for part in file_path.split("/") if part]
    if len(parts) <= 1:
        return f"./{RUNTIME_FILENAME}"
    return "../" * (len(parts) - 1) + RUNTIME_FILENAME


def parse_source(source: bytes) -> Node:
    """Parse JavaScript bytes and return the program node.

    Raises:
        SourceParseError: If tree-sitter had to recover from a syntax error.
    """
    tree = Parser(JS_LANGUAGE).parse(source)
    root = tree.root_node
    if root.has_error:
        error = _first_error(root)
        row, column = error.start_point if error is not None else root.start_point
        raise SourceParseError(f"syntax error at line {row + 1}, column {column + 1}")
    return root


def _first_error(root: Node) -> Node | None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return None


def _statements(node: Node) -> list[Node]:
    return [child for child in node.named_children if child.type not in NON_STATEMENT_TYPES]


def _site(node: Node) -> StatementSite:
    row, column = node.start_point
    return StatementSite(
        kind=_STATEMENT_KINDS.get(node.type, KIND_STATEMENT),
        offset=node.start_byte,
        line=row + 1,
        column=column,
    )


def _is_async(node: Node) -> bool:
    return any(child.type == "async" for child in node.children)


def _is_generator(node: Node) -> bool:
    if node.type in GENERATOR_TYPES:
        return True
    return node.type == "method_definition" and any(child.type == "*" for child in node.children)


def _is_hoisted_declaration(node: Node) -> bool:
    """Function declarations evaluate nothing where they stand."""
    if node.type in HOISTED_TYPES:
        return True
    if node.type == "export_statement":
        declaration = node.child_by_field_name("declaration")
        return declaration is not None and declaration.type in HOISTED_TYPES
    return False


def _container_name(node: Node, source: bytes) -> str:
    if node.type == "arrow_function":
        return ARROW
    name = node.child_by_field_name("name")
    if name is None:
        return ANONYMOUS
    return source[name.start_byte : name.end_byte].decode("utf-8")


def _async_body(node: Node, options: InjectOptions) -> Node | None:
    """The statement block of an async function node, or None if not a candidate."""
    if not _is_async(node):
        return None
    if options.skip_generators and _is_generator(node):
        return None
    body = node.child_by_field_name("body")
    if body is None or body.type != "statement_block":
        # Expression-bodied arrows have no statement list to splice into.
        return None
    return body


def locate_statements(source: bytes, options: InjectOptions) -> SourceLayout:
    """Find every injection candidate in a JavaScript module."""
    root = parse_source(source)
    layout = SourceLayout()

    children = _statements(root)
    first_non_import = 0
    for i, child in enumerate(children):
        if child.type != "import_statement":
            break
        layout.import_anchor = child.end_byte
        first_non_import = i + 1
        if RUNTIME_FRAGMENT.encode("utf-8") in source[child.start_byte : child.end_byte]:
            layout.has_runtime_import = True

    if first_non_import == 0:
        for child in root.named_children:
            if child.type == "hash_bang_line":
                layout.import_anchor = child.end_byte

    top_level = [
        _site(child) for child in children[first_non_import:] if not _is_hoisted_declaration(child)
    ]
    if top_level:
        layout.bodies.append(ContainerBody(TOP_LEVEL, top_level))

    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "import_statement" and not layout.has_runtime_import:
            text = source[node.start_byte : node.end_byte]
            layout.has_runtime_import = RUNTIME_FRAGMENT.encode("utf-8") in text
        if node.type in FUNCTION_TYPES:
            body = _async_body(node, options)
            if body is not None:
                statements = [_site(stmt) for stmt in _statements(body)]
                layout.bodies.append(ContainerBody(_container_name(node, source), statements))
        stack.extend(reversed(node.children))

    return layout


class JavaScriptAdapter(LanguageAdapter):
    """Handles .js and .mjs files with ESM import syntax."""

    adapter_id = "javascript"
    display_name = "JavaScript (ESM)"
    file_extensions = (".js", ".mjs")
    syntax = InjectionSyntax(
        comment="/* {} */",
        call=f"await {DELAY_IDENTIFIER}({{}});",
        allow_inline=True,
    )

    def make_classifier(self) -> RecoveryClassifier:
        return RecoveryClassifier(RUNTIME_FRAGMENT, comment_prefixes=("//", "/*"))

    def locate(self, source: bytes, options: InjectOptions) -> SourceLayout:
        return locate_statements(source, options)

    def runtime_import_line(self, file_path: str) -> str:
        return f"import {{ {DELAY_IDENTIFIER} }} from '{compute_runtime_import_path(file_path)}';"

    def runtime_info(self) -> RuntimeInfo:
        return RuntimeInfo(source_path=runtime_path(RUNTIME_FILENAME), file_name=RUNTIME_FILENAME)
