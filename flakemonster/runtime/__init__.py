"""
Support modules copied next to injected sources.

Each file here is dependency-free and exposes a single ``__FlakeMonster__``
callable that performs the actual timed suspension.
"""

from pathlib import Path

RUNTIME_DIR = Path(__file__).resolve().parent


def runtime_path(file_name: str) -> Path:
    """Absolute path of a bundled support module."""
    return RUNTIME_DIR / file_name
