"""
Adapter registry: routes files to the language adapter that handles them.
"""

from __future__ import annotations

from flakemonster.adapters.base import LanguageAdapter


class AdapterRegistry:
    """Maps adapter ids and file extensions to language adapters."""

    def __init__(self) -> None:
        self._adapters: dict[str, LanguageAdapter] = {}

    def register(self, adapter: LanguageAdapter) -> None:
        """
        Register an adapter.

        Raises:
            TypeError: If ``adapter`` is not a LanguageAdapter.
            ValueError: If it has no id or no file extensions.
        """
        if not isinstance(adapter, LanguageAdapter):
            raise TypeError(f"Expected a LanguageAdapter, got {type(adapter).__name__}")
        if not adapter.adapter_id:
            raise ValueError("Adapter id must be a non-empty string")
        if not adapter.file_extensions:
            raise ValueError(f'Adapter "{adapter.adapter_id}" must have at least one file extension')
        self._adapters[adapter.adapter_id] = adapter

    def get_adapter_for_file(self, file_path: str) -> LanguageAdapter | None:
        """Find the adapter for a file, or None if no adapter handles it."""
        for adapter in self._adapters.values():
            if adapter.can_handle(file_path):
                return adapter
        return None

    def get_adapter(self, adapter_id: str) -> LanguageAdapter | None:
        return self._adapters.get(adapter_id)

    def list(self) -> list[str]:
        return list(self._adapters)
