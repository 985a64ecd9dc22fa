"""
The injection manifest: a durable ledger of what was injected where.

One manifest is active per project root, stored at
``.flake-monster/manifest.json``. It records, for each touched file, the
content hashes before and after injection and every injection point, so that
restoration can be exact and external edits can be detected.
"""

from __future__ import annotations

import hashlib
import json
import os
import secrets
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from flakemonster.types import FileInjectionRecord

MANIFEST_VERSION = 1
MANIFEST_DIRNAME = ".flake-monster"
MANIFEST_FILENAME = "manifest.json"


def hash_content(content: str) -> str:
    """SHA-256 of a file's text, used for change detection only."""
    return "sha256:" + hashlib.sha256(content.encode("utf-8")).hexdigest()


def get_manifest_dir(project_root: str | Path) -> Path:
    """Directory holding the manifest for a project root."""
    return Path(project_root) / MANIFEST_DIRNAME


class Manifest:
    """Tracks every injection of a run for reliable removal and reporting."""

    def __init__(self, seed: int | None = None, mode: str | None = None) -> None:
        self.version = MANIFEST_VERSION
        self.created_at = datetime.now(timezone.utc).isoformat()
        self.seed = seed
        self.mode = mode
        self.files: dict[str, FileInjectionRecord] = {}
        self.support_files: list[str] = []

    def add_file(self, relative_path: str, record: FileInjectionRecord) -> None:
        """Record the injection results for a file."""
        self.files[relative_path] = record

    def add_support_file(self, relative_path: str) -> None:
        """Record a support module copied into the project."""
        if relative_path not in self.support_files:
            self.support_files.append(relative_path)

    def get_files(self) -> dict[str, FileInjectionRecord]:
        return self.files

    def get_total_injections(self) -> int:
        return sum(len(record.points) for record in self.files.values())

    def is_file_unmodified(self, relative_path: str, current_hash: str) -> bool:
        """Check that a file still holds exactly what injection wrote."""
        record = self.files.get(relative_path)
        if record is None:
            return False
        return record.modified_hash == current_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "seed": self.seed,
            "mode": self.mode,
            "files": {path: record.to_dict() for path, record in self.files.items()},
            "supportFiles": list(self.support_files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        manifest = cls(seed=data.get("seed"), mode=data.get("mode"))
        manifest.version = data.get("version", MANIFEST_VERSION)
        manifest.created_at = data.get("createdAt", manifest.created_at)
        manifest.files = {
            path: FileInjectionRecord.from_dict(record)
            for path, record in (data.get("files") or {}).items()
        }
        manifest.support_files = list(data.get("supportFiles") or [])
        return manifest

    def save(self, dir_path: str | Path) -> Path:
        """Write the manifest atomically into ``dir_path``."""
        dir_path = Path(dir_path)
        dir_path.mkdir(parents=True, exist_ok=True)
        target = dir_path / MANIFEST_FILENAME
        tmp_path = target.with_suffix(f".json.tmp.{secrets.token_hex(4)}")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp_path, target)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        return target

    @classmethod
    def load(cls, dir_path: str | Path) -> Manifest | None:
        """
        Load the manifest from ``dir_path``.

        Returns None when there is no manifest, which means there is nothing
        to restore. A corrupt manifest is reported and treated the same way.
        """
        path = Path(dir_path) / MANIFEST_FILENAME
        if not path.is_file():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            print(f"[!] Warning: Could not read manifest {path}: {e}", file=sys.stderr)
            return None
        if not isinstance(data, dict):
            print(f"[!] Warning: Ignoring malformed manifest {path}", file=sys.stderr)
            return None
        try:
            return cls.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            print(f"[!] Warning: Ignoring malformed manifest {path}: {e}", file=sys.stderr)
            return None

    @staticmethod
    def delete(dir_path: str | Path) -> None:
        """Remove the manifest file if it exists."""
        (Path(dir_path) / MANIFEST_FILENAME).unlink(missing_ok=True)
