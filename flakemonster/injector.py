"""
Formatting-preserving text injection.

Locators report where statements start; this module decides which of them get
a suspend point, renders the marker comment and the delay call, and splices
them into the original bytes. Nothing here ever regenerates source from a
syntax tree: the only edits are pure insertions, so everything else in the
file stays byte-for-byte identical.
"""

from __future__ import annotations

import codecs
import hashlib
from dataclasses import dataclass, field
from typing import NamedTuple

from flakemonster.profile import InjectOptions, should_inject
from flakemonster.seed import compute_delay_ms
from flakemonster.types import InjectionPoint, Insertion

MARKER_PREFIX = "@flake-monster[jt92-se2j!] v1"
# The part of the marker that recovery and the idempotency guard look for.
RECOVERY_STAMP = "jt92-se2j!"
DELAY_IDENTIFIER = "__FlakeMonster__"

TOP_LEVEL = "<top-level>"
ANONYMOUS = "<anonymous>"
ARROW = "<arrow>"

_INDENT_CHARS = b" \t\f\v"


class StatementSite(NamedTuple):
    """Where a candidate statement starts in the original source."""

    kind: str
    offset: int
    line: int
    column: int


class ContainerBody(NamedTuple):
    """The statement list of one container (a function body or module scope)."""

    name: str
    statements: list[StatementSite]


@dataclass
class SourceLayout:
    """Everything a locator learned about a file."""

    bodies: list[ContainerBody] = field(default_factory=list)
    # Byte offset right after the last leading import (0 for file start).
    import_anchor: int = 0
    has_runtime_import: bool = False


class InjectionSyntax(NamedTuple):
    """How a language spells the injected lines."""

    comment: str
    call: str
    # Whether a statement sharing its line with other code may be split off
    # onto its own line.
    allow_inline: bool


def get_indent(source: bytes, offset: int) -> bytes:
    """Return the leading whitespace of the line containing ``offset``."""
    line_start = source.rfind(b"\n", 0, offset) + 1
    segment = source[line_start:offset]
    return segment[: len(segment) - len(segment.lstrip(_INDENT_CHARS))]


def is_inline(source: bytes, offset: int) -> bool:
    """True when other code precedes ``offset`` on its line."""
    line_start = source.rfind(b"\n", 0, offset) + 1
    return bool(source[line_start:offset].strip())


def make_point_id(file_path: str, container: str, index: int, line: int, column: int) -> str:
    """Short identifier for an injection point, unique per source position."""
    key = f"{file_path}:{container}:{index}:{line}:{column}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:8]


def render_marker(point_id: str, options: InjectOptions) -> str:
    return f"{MARKER_PREFIX} id={point_id} seed={options.seed} mode={options.mode}"


def compute_insertions(
    source: bytes,
    layout: SourceLayout,
    options: InjectOptions,
    syntax: InjectionSyntax,
) -> tuple[list[Insertion], list[InjectionPoint]]:
    """
    Compute the delay insertions for every container in ``layout``.

    Delays are resolved here and baked into the inserted text, so a later
    edit to the file never changes what an existing point waits for.

    Args:
        source: The original file contents as UTF-8 bytes.
        layout: Statement boundaries reported by a locator.
        options: Mode, seed and delay range for this file.
        syntax: The language's comment and call templates.

    Returns:
        A tuple of (insertions against ``source``, injection points).
    """
    insertions: list[Insertion] = []
    points: list[InjectionPoint] = []
    min_ms, max_ms = options.delay_range

    for body in layout.bodies:
        injection_index = 0
        for position, stmt in enumerate(body.statements):
            if not should_inject(options.mode, stmt.kind, position):
                continue
            inline = is_inline(source, stmt.offset)
            if inline and not syntax.allow_inline:
                continue

            delay_ms = compute_delay_ms(
                options.seed, options.file_path, body.name, injection_index, min_ms, max_ms
            )
            point_id = make_point_id(
                options.file_path, body.name, injection_index, stmt.line, stmt.column
            )
            indent = get_indent(source, stmt.offset).decode("utf-8")
            marker = syntax.comment.format(render_marker(point_id, options))
            call = syntax.call.format(delay_ms)
            text = f"{marker}\n{indent}{call}\n{indent}"
            if inline:
                # Break the line so the injected lines can be removed whole.
                text = f"\n{indent}{text}"

            insertions.append(Insertion(stmt.offset, text))
            points.append(
                InjectionPoint(
                    id=point_id,
                    container_name=body.name,
                    index=injection_index,
                    line=stmt.line,
                    column=stmt.column,
                    delay_ms=delay_ms,
                )
            )
            injection_index += 1

    return insertions, points


def support_import_insertion(source: bytes, anchor: int, import_line: str) -> Insertion:
    """
    Place the support-module import on its own line right after ``anchor``.

    ``anchor`` is the end of the last leading import (or header), or 0 to put
    the import at the very top of the file, just after a byte order mark.
    """
    if anchor <= 0:
        start = len(codecs.BOM_UTF8) if source.startswith(codecs.BOM_UTF8) else 0
        return Insertion(start, f"{import_line}\n")
    newline = source.find(b"\n", anchor)
    line_end = len(source) if newline == -1 else newline
    if source[anchor:line_end].strip():
        # Code follows the import on the same line.
        return Insertion(anchor, f"\n{import_line}\n")
    if newline == -1:
        return Insertion(len(source), f"\n{import_line}")
    return Insertion(newline + 1, f"{import_line}\n")


def apply_insertions(source: bytes, insertions: list[Insertion]) -> bytes:
    """
    Apply insertions back to front so earlier offsets stay valid.

    The sort is stable: of two insertions at the same offset, the one listed
    later ends up first in the output.
    """
    result = source
    for offset, text in sorted(insertions, key=lambda ins: ins.offset, reverse=True):
        result = result[:offset] + text.encode("utf-8") + result[offset:]
    return result
