"""
The language adapter contract.

The engine only ever deals with source text and metadata. Parsing, choosing
statements and spelling the injected lines is the adapter's job, which is
what lets a new language be added without touching the core. Subclasses
must implement every abstract member before they can be instantiated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from flakemonster.injector import (
    RECOVERY_STAMP,
    InjectionSyntax,
    SourceLayout,
    apply_insertions,
    compute_insertions,
    support_import_insertion,
)
from flakemonster.profile import InjectOptions
from flakemonster.recovery import RecoveryClassifier
from flakemonster.types import InjectionResult, RecoveryMatch, RemovalResult


class SourceParseError(ValueError):
    """Raised by a locator when a file cannot be split into statements."""


@dataclass(frozen=True)
class RuntimeInfo:
    """Where a language's support module lives and what it is called on disk."""

    source_path: Path
    file_name: str


class LanguageAdapter(ABC):
    """Base class for every language adapter."""

    adapter_id: str = ""
    display_name: str = ""
    file_extensions: tuple[str, ...] = ()

    def __init__(self) -> None:
        self.classifier = self.make_classifier()

    def can_handle(self, file_path: str) -> bool:
        """Return True if this adapter should process ``file_path``."""
        if Path(file_path).name == self.runtime_info().file_name:
            # Never inject into a copied support module.
            return False
        return file_path.endswith(self.file_extensions)

    @property
    @abstractmethod
    def syntax(self) -> InjectionSyntax:
        """Comment and call templates for the injected lines."""

    @abstractmethod
    def make_classifier(self) -> RecoveryClassifier:
        """Build the recovery classifier for this language."""

    @abstractmethod
    def locate(self, source: bytes, options: InjectOptions) -> SourceLayout:
        """Find the candidate statements. Raises SourceParseError."""

    @abstractmethod
    def runtime_import_line(self, file_path: str) -> str:
        """The line that imports the support module into ``file_path``."""

    @abstractmethod
    def runtime_info(self) -> RuntimeInfo:
        """Describe the support module that must ship with injected files."""

    def inject(self, source: str, options: InjectOptions) -> InjectionResult:
        """Insert delay statements into ``source`` and report where they went."""
        if RECOVERY_STAMP in source:
            # Already injected: a second pass would stack delays and make
            # recovery ambiguous.
            return InjectionResult(source=source)

        data = source.encode("utf-8")
        try:
            layout = self.locate(data, options)
        except SourceParseError as e:
            return InjectionResult(source=source, error=str(e))

        insertions, points = compute_insertions(data, layout, options, self.syntax)
        if not points:
            return InjectionResult(source=source)

        reference_added = False
        if not layout.has_runtime_import:
            import_line = self.runtime_import_line(options.file_path)
            insertions.append(support_import_insertion(data, layout.import_anchor, import_line))
            reference_added = True

        output = apply_insertions(data, insertions).decode("utf-8")
        return InjectionResult(
            source=output,
            points=points,
            support_module_reference_added=reference_added,
        )

    def remove(self, source: str) -> RemovalResult:
        """Strip every injected line from ``source``."""
        return self.classifier.recover_delays(source)

    def scan(self, source: str) -> list[RecoveryMatch]:
        """Preview what ``remove()`` would strip."""
        return self.classifier.scan_for_recovery(source)
