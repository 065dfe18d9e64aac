"""Preference store registry and factory."""
from __future__ import annotations

from pathlib import Path

from ..errors import UnknownStoreError
from .base import PreferenceStore

_REGISTRY: dict[str, type[PreferenceStore]] = {}
_FILE_FORMATS: dict[str, type[PreferenceStore]] = {}

def register_store(store: type[PreferenceStore]) -> type[PreferenceStore]:
    """Register a store class under its ``kind`` and return it for decorator use."""
    _REGISTRY[store.kind] = store
    return store

def register_file_format(store: type[PreferenceStore]) -> type[PreferenceStore]:
    """Register a file store class for each of its suffixes."""
    for suf in getattr(store, "suffixes", ()):
        _FILE_FORMATS[suf] = store
    return store

def store_kinds() -> list[str]:
    return sorted(_REGISTRY)

def file_format_for_path(path: Path) -> type[PreferenceStore]:
    store_cls = _FILE_FORMATS.get(Path(path).suffix.lower())
    if store_cls is None:
        raise UnknownStoreError(f"No file store for {Path(path).suffix!r}")
    return store_cls

def create_store(kind: str, **options) -> PreferenceStore:
    store_cls = _REGISTRY.get(kind)
    if store_cls is None:
        raise UnknownStoreError(kind)
    return store_cls.from_options(**options)

# register default stores
from . import defaults_store, file_store, memory_store  # noqa: F401,E402
from .defaults_store import DefaultsStore  # noqa: E402
from .file_store import FileStore, IniFileStore, JsonFileStore, YamlFileStore  # noqa: E402
from .memory_store import MemoryStore  # noqa: E402

__all__ = [
    "PreferenceStore",
    "register_store",
    "register_file_format",
    "store_kinds",
    "file_format_for_path",
    "create_store",
    "DefaultsStore",
    "FileStore",
    "IniFileStore",
    "JsonFileStore",
    "YamlFileStore",
    "MemoryStore",
]
