"""
Parser-independent removal of injected lines.

Recovery has to work when the file no longer parses, the manifest is gone, or
a formatter has spread a delay call over several lines. It therefore looks at
one line at a time and relies on three fragments only: the marker stamp, the
delay call shape, and an import of the support module. Multi-line calls are
followed by counting ``{}`` and ``()`` depth.
"""

from __future__ import annotations

import re

from flakemonster.injector import DELAY_IDENTIFIER, RECOVERY_STAMP
from flakemonster.types import RecoveryMatch, RemovalResult

_IMPORT_KEYWORD = re.compile(r"\b(?:import|from|require)\b")
_QUOTES = ("'", '"', "`")


def net_bracket_depth(line: str) -> int:
    """Count opening minus closing braces and parentheses on a line."""
    depth = 0
    for ch in line:
        if ch in "{(":
            depth += 1
        elif ch in "})":
            depth -= 1
    return depth


class RecoveryClassifier:
    """
    Classifies and strips injected lines for one language.

    Args:
        runtime_fragment: Part of the support module's filename that an
            import of it always contains.
        comment_prefixes: Tokens that open a comment in the language. A delay
            call written after one of them is not in call position.
        delay_identifier: Name of the injected delay function.
    """

    def __init__(
        self,
        runtime_fragment: str,
        comment_prefixes: tuple[str, ...] = ("//", "/*"),
        delay_identifier: str = DELAY_IDENTIFIER,
    ) -> None:
        self.runtime_fragment = runtime_fragment
        self.comment_prefixes = comment_prefixes
        self.delay_identifier = delay_identifier
        self._call_pattern = re.compile(rf"\bawait\s+{re.escape(delay_identifier)}\s*\(")

    def _in_call_position(self, line: str) -> bool:
        for match in self._call_pattern.finditer(line):
            prefix = line[: match.start()]
            if any(token in prefix for token in self.comment_prefixes):
                continue
            if any(prefix.count(quote) % 2 for quote in _QUOTES):
                continue
            return True
        return False

    def _stamp_carries_call(self, line: str) -> bool:
        """True when a block-comment marker shares its line with the delay call."""
        close = line.find("*/", line.find(RECOVERY_STAMP))
        return close != -1 and self._in_call_position(line[close + 2 :])

    def classify_line(self, trimmed: str) -> str | None:
        """Return why a line would be removed, or None to keep it."""
        if RECOVERY_STAMP in trimmed:
            return "stamp"
        if self._in_call_position(trimmed):
            return "identifier"
        if self.runtime_fragment in trimmed and _IMPORT_KEYWORD.search(trimmed):
            return "import"
        return None

    def _collect(self, lines: list[str]) -> list[tuple[int, str]]:
        """Walk the lines and return (index, reason) for each one to remove."""
        hits: list[tuple[int, str]] = []
        depth = 0
        spanning = False

        for i, line in enumerate(lines):
            trimmed = line.strip()

            if spanning:
                hits.append((i, "identifier"))
                depth += net_bracket_depth(trimmed)
                if depth <= 0:
                    spanning = False
                    depth = 0
                continue

            reason = self.classify_line(trimmed)
            if reason is None:
                continue
            hits.append((i, reason))
            if reason == "identifier" or (reason == "stamp" and self._stamp_carries_call(trimmed)):
                net = net_bracket_depth(trimmed)
                if net > 0:
                    spanning = True
                    depth = net

        return hits

    def scan_for_recovery(self, source: str) -> list[RecoveryMatch]:
        """Preview the lines recovery would remove, without touching the source."""
        lines = source.removeprefix("\ufeff").split("\n")
        return [
            RecoveryMatch(line=index + 1, content=lines[index], reason=reason)
            for index, reason in self._collect(lines)
        ]

    def recover_delays(self, source: str) -> RemovalResult:
        """Remove every line the classifier matches."""
        bom = "\ufeff" if source.startswith("\ufeff") else ""
        lines = source[len(bom) :].split("\n")
        remove = {index for index, _ in self._collect(lines)}
        kept = [line for i, line in enumerate(lines) if i not in remove]
        return RemovalResult(source=bom + "\n".join(kept), removed_count=len(remove))
