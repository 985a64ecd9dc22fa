"""
Language-agnostic injection orchestrator.

The engine discovers files, routes each one to its language adapter, writes
the results back, and keeps the manifest. It never looks at syntax trees
itself: everything language-specific lives in the adapters.

Restoration has two separate entry points. ``restore_all`` follows a
manifest; ``restore_by_globs`` is the manifest-free fallback that runs the
recovery classifier over every matching file.
"""

from __future__ import annotations

import os
import re
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from flakemonster.adapters.registry import AdapterRegistry
from flakemonster.manifest import MANIFEST_DIRNAME, Manifest, hash_content
from flakemonster.profile import FlakeProfile
from flakemonster.types import FileInjectionRecord, RecoveryMatch


@dataclass
class FileScanResult:
    """Recovery matches found in one file."""

    file: str
    matches: list[RecoveryMatch]


@dataclass
class RestoreSummary:
    """Totals of a restoration pass."""

    files_restored: int = 0
    lines_removed: int = 0
    tampered: list[str] = field(default_factory=list)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """
    Translate a glob into a regex over POSIX relative paths.

    ``**/`` matches zero or more directories, ``*`` and ``?`` never cross a
    ``/``.
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def discover_files(
    root_dir: str | Path, globs: Iterable[str], exclude: Iterable[str] = ()
) -> list[str]:
    """Return sorted POSIX paths under ``root_dir`` matching ``globs`` but not ``exclude``."""
    root = Path(root_dir)
    include_res = [glob_to_regex(p.removeprefix("./")) for p in globs]
    exclude_res = [glob_to_regex(p.removeprefix("./")) for p in exclude]
    found: list[str] = []

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"
        # Prune excluded directories, and never descend into our own state.
        dirnames[:] = sorted(
            d
            for d in dirnames
            if d != MANIFEST_DIRNAME
            and not any(rx.match(f"{prefix}{d}/") for rx in exclude_res)
        )
        for name in filenames:
            rel = f"{prefix}{name}"
            if not any(rx.match(rel) for rx in include_res):
                continue
            if any(rx.match(rel) for rx in exclude_res):
                continue
            found.append(rel)

    return sorted(found)


def read_source(path: Path) -> str:
    """Read a file as UTF-8 without translating line endings."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def write_source(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


class InjectorEngine:
    """Routes files to adapters and manages manifests and support modules."""

    def __init__(self, registry: AdapterRegistry, profile: FlakeProfile) -> None:
        """
        Args:
            registry: Registry used to find the adapter for each file.
            profile: Mode and delay settings for injection runs.
        """
        self.registry = registry
        self.profile = profile
        self.skipped: dict[str, str] = {}

    def inject_all(
        self,
        root_dir: str | Path,
        globs: Iterable[str],
        seed: int,
        exclude: Iterable[str] = (),
    ) -> Manifest:
        """
        Inject delays into every matching file under ``root_dir``.

        Files that cannot be read, parsed or written are skipped with a warning and
        listed in ``self.skipped``. Each adapter that injected at least once
        gets its support module copied to the root exactly once.

        Returns:
            The manifest for this run. The caller decides where to save it.
        """
        root = Path(root_dir)
        manifest = Manifest(seed=seed, mode=self.profile.mode)
        adapters_used = {}
        self.skipped = {}

        for rel in discover_files(root, globs, exclude):
            adapter = self.registry.get_adapter_for_file(rel)
            if adapter is None:
                continue

            path = root / rel
            try:
                source = read_source(path)
            except (OSError, UnicodeDecodeError) as e:
                self._skip(rel, str(e))
                continue

            result = adapter.inject(source, self.profile.to_inject_options(rel, seed))
            if result.error:
                self._skip(rel, result.error)
                continue
            if not result.points:
                continue

            try:
                write_source(path, result.source)
            except OSError as e:
                self._skip(rel, str(e))
                continue
            manifest.add_file(
                rel,
                FileInjectionRecord(
                    adapter_id=adapter.adapter_id,
                    original_hash=hash_content(source),
                    modified_hash=hash_content(result.source),
                    points=result.points,
                    support_module_reference_added=result.support_module_reference_added,
                ),
            )
            adapters_used.setdefault(adapter.adapter_id, adapter)

        for adapter in adapters_used.values():
            info = adapter.runtime_info()
            shutil.copyfile(info.source_path, root / info.file_name)
            manifest.add_support_file(info.file_name)

        return manifest

    def _skip(self, rel: str, reason: str) -> None:
        self.skipped[rel] = reason
        print(f"  [!] Skipping {rel}: {reason}", file=sys.stderr)

    def _scan_files(self, root: Path, files: Iterable[tuple[str, str | None]]) -> list[FileScanResult]:
        results = []
        for rel, adapter_id in files:
            if adapter_id is None:
                adapter = self.registry.get_adapter_for_file(rel)
            else:
                adapter = self.registry.get_adapter(adapter_id)
            if adapter is None:
                continue
            try:
                source = read_source(root / rel)
            except (OSError, UnicodeDecodeError):
                continue
            matches = adapter.scan(source)
            if matches:
                results.append(FileScanResult(file=rel, matches=matches))
        return results

    def scan_all(self, root_dir: str | Path, manifest: Manifest) -> list[FileScanResult]:
        """Preview recovery matches in the files listed in a manifest."""
        files = [(rel, record.adapter_id) for rel, record in manifest.get_files().items()]
        return self._scan_files(Path(root_dir), files)

    def scan_by_globs(
        self, root_dir: str | Path, globs: Iterable[str], exclude: Iterable[str] = ()
    ) -> list[FileScanResult]:
        """Preview recovery matches in files found by glob, no manifest needed."""
        files = [(rel, None) for rel in discover_files(root_dir, globs, exclude)]
        return self._scan_files(Path(root_dir), files)

    def restore_all(self, root_dir: str | Path, manifest: Manifest) -> RestoreSummary:
        """
        Remove all injections from the files listed in ``manifest``.

        A file whose content no longer matches the post-injection hash is
        restored anyway; the mismatch is reported and listed in the summary.
        """
        root = Path(root_dir)
        summary = RestoreSummary()

        for rel, record in manifest.get_files().items():
            adapter = self.registry.get_adapter(record.adapter_id)
            if adapter is None:
                print(
                    f'  [!] No adapter found for "{record.adapter_id}", skipping {rel}',
                    file=sys.stderr,
                )
                continue

            path = root / rel
            try:
                source = read_source(path)
            except (OSError, UnicodeDecodeError):
                print(f"  [!] File not found: {rel}, skipping", file=sys.stderr)
                continue

            if not manifest.is_file_unmodified(rel, hash_content(source)):
                print(
                    f"  [!] Warning: {rel} was modified after injection. Restoring anyway.",
                    file=sys.stderr,
                )
                summary.tampered.append(rel)

            result = adapter.remove(source)
            write_source(path, result.source)
            summary.files_restored += 1
            summary.lines_removed += result.removed_count

        self._remove_support_files(root, manifest.support_files)
        return summary

    def restore_by_globs(
        self, root_dir: str | Path, globs: Iterable[str], exclude: Iterable[str] = ()
    ) -> RestoreSummary:
        """Recover files found by glob and delete any support modules left behind."""
        root = Path(root_dir)
        summary = RestoreSummary()

        for rel in discover_files(root, globs, exclude):
            adapter = self.registry.get_adapter_for_file(rel)
            if adapter is None:
                continue
            path = root / rel
            try:
                source = read_source(path)
            except (OSError, UnicodeDecodeError):
                continue

            result = adapter.remove(source)
            if result.removed_count == 0:
                continue
            write_source(path, result.source)
            summary.files_restored += 1
            summary.lines_removed += result.removed_count

        # Support modules are only ever copied to the root.
        runtime_names = [
            self.registry.get_adapter(adapter_id).runtime_info().file_name
            for adapter_id in self.registry.list()
        ]
        self._remove_support_files(root, runtime_names)
        return summary

    def _remove_support_files(self, root: Path, support_files: Iterable[str]) -> None:
        for rel in support_files:
            (root / rel).unlink(missing_ok=True)
