"""Shared type definitions for flakemonster.

Injection points and file records are persisted inside the manifest, so each
of them knows how to convert itself to and from the camelCase JSON shape used
on disk. The rest are transient values passed between adapters and the
engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

RECOVERY_REASONS = ("stamp", "identifier", "import")


@dataclass(frozen=True)
class InjectionPoint:
    """One inserted suspend call, located in the original source."""

    id: str
    container_name: str
    index: int
    line: int
    column: int
    delay_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "containerName": self.container_name,
            "indexWithinContainer": self.index,
            "sourceLine": self.line,
            "sourceColumn": self.column,
            "delayMilliseconds": self.delay_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InjectionPoint:
        return cls(
            id=data.get("id", ""),
            container_name=data.get("containerName", ""),
            index=data.get("indexWithinContainer", 0),
            line=data.get("sourceLine", 0),
            column=data.get("sourceColumn", 0),
            delay_ms=data.get("delayMilliseconds", 0),
        )


class Insertion(NamedTuple):
    """A pending text edit against the original UTF-8 bytes."""

    offset: int
    text: str


@dataclass
class InjectionResult:
    """What an adapter hands back from ``inject()``.

    ``error`` is set when the file was skipped because it could not be
    parsed; the source is then returned untouched.
    """

    source: str
    points: list[InjectionPoint] = field(default_factory=list)
    support_module_reference_added: bool = False
    error: str | None = None


@dataclass
class RemovalResult:
    """What an adapter hands back from ``remove()``."""

    source: str
    removed_count: int = 0


@dataclass(frozen=True)
class RecoveryMatch:
    """A line the recovery classifier would delete, and why."""

    line: int
    content: str
    reason: str


@dataclass
class FileInjectionRecord:
    """Manifest entry for one injected file."""

    adapter_id: str
    original_hash: str
    modified_hash: str
    points: list[InjectionPoint] = field(default_factory=list)
    support_module_reference_added: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "adapterId": self.adapter_id,
            "originalContentHash": self.original_hash,
            "modifiedContentHash": self.modified_hash,
            "injectionPoints": [p.to_dict() for p in self.points],
            "supportModuleReferenceAdded": self.support_module_reference_added,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileInjectionRecord:
        return cls(
            adapter_id=data.get("adapterId", ""),
            original_hash=data.get("originalContentHash", ""),
            modified_hash=data.get("modifiedContentHash", ""),
            points=[InjectionPoint.from_dict(p) for p in data.get("injectionPoints", [])],
            support_module_reference_added=bool(data.get("supportModuleReferenceAdded", False)),
        )
