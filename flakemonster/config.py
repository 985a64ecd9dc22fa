"""
Project configuration: defaults, an optional JSON config file, and CLI overrides.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

CONFIG_FILENAMES = (".flakemonsterrc.json", "flakemonster.config.json")

DEFAULTS: dict[str, Any] = {
    "include": ["src/**/*.js"],
    "exclude": ["**/node_modules/**", "**/dist/**", "**/build/**", "**/.venv/**"],
    "mode": "medium",
    "min_delay_ms": 0,
    "max_delay_ms": 50,
    "skip_generators": True,
}

# Key spelling used by the JavaScript tooling.
CAMEL_CASE_KEYS = {
    "minDelayMs": "min_delay_ms",
    "maxDelayMs": "max_delay_ms",
    "skipGenerators": "skip_generators",
}


def load_json_file(path: Path) -> dict[str, Any] | None:
    """Load a JSON object from ``path``, or None if it is missing or invalid."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError) as e:
        print(f"[!] Warning: Ignoring invalid config file {path}: {e}", file=sys.stderr)
        return None
    if not isinstance(data, dict):
        print(f"[!] Warning: Ignoring config file {path}: expected a JSON object", file=sys.stderr)
        return None
    return data


def normalize_keys(file_config: dict[str, Any], source: Path) -> dict[str, Any]:
    """Map camelCase keys to their snake_case names and drop unknown keys."""
    normalized = {}
    for key, value in file_config.items():
        name = CAMEL_CASE_KEYS.get(key, key)
        if name not in DEFAULTS:
            print(f"[~] Ignoring unknown key \"{key}\" in {source}", file=sys.stderr)
            continue
        normalized[name] = value
    return normalized


def load_config(project_root: str | Path) -> dict[str, Any]:
    """Return the defaults merged with the first config file found in ``project_root``."""
    for filename in CONFIG_FILENAMES:
        path = Path(project_root) / filename
        file_config = load_json_file(path)
        if file_config is not None:
            return {**DEFAULTS, **normalize_keys(file_config, path)}
    return dict(DEFAULTS)


def merge_with_cli_options(config: dict[str, Any], args: argparse.Namespace) -> dict[str, Any]:
    """Overlay the CLI options the user actually passed; the CLI wins."""
    merged = dict(config)
    for key in ("mode", "min_delay_ms", "max_delay_ms"):
        value = getattr(args, key, None)
        if value is not None:
            merged[key] = value
    extra_exclude = getattr(args, "exclude", None)
    if extra_exclude:
        merged["exclude"] = list(merged.get("exclude", [])) + list(extra_exclude)
    if getattr(args, "include_generators", False):
        merged["skip_generators"] = False
    return merged
