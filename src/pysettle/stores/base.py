from __future__ import annotations

from abc import ABC, abstractmethod

from ..scope import Scope
from ..values import Value


class PreferenceStore(ABC):
    """Read and write single typed values at ``(scope, domain, key)``.

    ``read`` returns :data:`~pysettle.values.NOT_SET` for an absent key and
    raises :class:`~pysettle.errors.ReadError` when the store cannot answer.
    ``write`` is idempotent, removes the key when given ``NOT_SET`` and raises
    :class:`~pysettle.errors.WriteError` on rejection.
    """

    kind: str = ""

    @classmethod
    def from_options(cls, **options) -> "PreferenceStore":
        return cls(**options)

    @abstractmethod
    def read(self, scope: Scope, domain: str, key: str) -> Value:
        pass

    @abstractmethod
    def write(self, scope: Scope, domain: str, key: str, value: Value) -> None:
        pass
