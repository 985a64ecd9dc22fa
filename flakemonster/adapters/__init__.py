"""
The `flakemonster.adapters` package contains the language adapters and the
registry the engine uses to route files to them.
"""

from flakemonster.adapters.base import LanguageAdapter, RuntimeInfo, SourceParseError
from flakemonster.adapters.javascript import JavaScriptAdapter
from flakemonster.adapters.python import PythonAdapter
from flakemonster.adapters.registry import AdapterRegistry


def create_default_registry() -> AdapterRegistry:
    """Return a registry with every built-in adapter registered."""
    registry = AdapterRegistry()
    registry.register(JavaScriptAdapter())
    registry.register(PythonAdapter())
    return registry


__all__ = [
    "AdapterRegistry",
    "JavaScriptAdapter",
    "LanguageAdapter",
    "PythonAdapter",
    "RuntimeInfo",
    "SourceParseError",
    "create_default_registry",
]
