from __future__ import annotations

from ..scope import Scope
from ..values import NOT_SET, Value, check_value
from . import register_store
from .base import PreferenceStore


@register_store
class MemoryStore(PreferenceStore):
    """Store keeping every scope in a process local dictionary."""

    kind = "memory"

    def __init__(self) -> None:
        self._data: dict[tuple[Scope, str, str], Value] = {}

    def read(self, scope: Scope, domain: str, key: str) -> Value:
        return self._data.get((scope, domain, key), NOT_SET)

    def write(self, scope: Scope, domain: str, key: str, value: Value) -> None:
        check_value(value)
        if value is NOT_SET:
            self._data.pop((scope, domain, key), None)
        else:
            self._data[(scope, domain, key)] = value

    def snapshot(self) -> dict[tuple[Scope, str, str], Value]:
        return dict(self._data)
