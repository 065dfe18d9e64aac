"""Reconciliation engine.

The engine walks a :class:`~pysettle.registry.Registry` against a
:class:`~pysettle.stores.PreferenceStore` and exposes three passes:

``report``
    read every entry and pair it with its desired value.
``backup``
    snapshot every entry's current value.
``apply``
    write every desired value.

Each pass visits all entries in registry order and records per-entry
failures instead of stopping.  The engine holds no state besides the
registry and the store it was built with.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TypeVar

from .config import EngineConfig
from .errors import ReadError, StoreError, WriteError
from .registry import Registry, SettingSpec
from .scope import Scope
from .stores.base import PreferenceStore
from .values import NOT_SET, Value, render_value

logger = logging.getLogger("pysettle.engine")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# result records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReadResult:
    """Current value of one entry, or the error that prevented reading it."""

    spec: SettingSpec
    value: Value = NOT_SET
    error: ReadError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def in_desired_state(self) -> bool:
        return self.ok and self.value == self.spec.desired and (
            type(self.value) is type(self.spec.desired)
        )


@dataclass(frozen=True)
class BackupRecord:
    scope: Scope
    domain: str
    key: str
    value: Value = NOT_SET
    error: ReadError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def scope_label(self) -> str:
        return self.scope.describe()


@dataclass(frozen=True)
class ApplyResult:
    spec: SettingSpec
    error: WriteError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    written = ok

    @property
    def confirmation(self) -> str | None:
        """Human readable line for a successful write, ``None`` on failure."""
        if not self.ok:
            return None
        return f" • {self.spec.domain} {self.spec.key} = {render_value(self.spec.desired)}"


@dataclass
class Reconciliation:
    """Outcome of :meth:`ReconciliationEngine.reconcile`."""

    report: list[ReadResult]
    confirmed: bool = False
    backup: list[BackupRecord] = field(default_factory=list)
    applied: list[ApplyResult] = field(default_factory=list)

    @property
    def failures(self) -> list[ApplyResult]:
        return [r for r in self.applied if not r.ok]


# ---------------------------------------------------------------------------
# engine
# ---------------------------------------------------------------------------


class ReconciliationEngine:
    """Report, back up and apply a registry of desired preferences."""

    def __init__(
        self,
        registry: Registry | Iterable[SettingSpec],
        store: PreferenceStore,
        *,
        max_workers: int = 1,
    ) -> None:
        if not isinstance(registry, Registry):
            registry = Registry(registry)
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._registry = registry
        self._store = store
        self._max_workers = max_workers

    @classmethod
    def from_config(cls, config: EngineConfig) -> "ReconciliationEngine":
        return cls(config.registry, config.store, max_workers=config.max_workers)

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def store(self) -> PreferenceStore:
        return self._store

    # ---- reads ----
    def _read(self, spec: SettingSpec) -> tuple[Value, ReadError | None]:
        where = f"{spec.scope.describe()} {spec.domain} {spec.key}"
        try:
            value = self._store.read(spec.scope, spec.domain, spec.key)
        except ReadError as exc:
            logger.warning("read %s failed: %s", where, exc)
            return NOT_SET, exc
        except (StoreError, OSError, ValueError) as exc:
            logger.warning("read %s failed: %s", where, exc)
            return NOT_SET, ReadError(str(exc))
        logger.debug("read %s = %s", where, render_value(value))
        return value, None

    def _ordered(self, func: Callable[[SettingSpec], T]) -> list[T]:
        if self._max_workers == 1 or len(self._registry) < 2:
            return [func(spec) for spec in self._registry]
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            # map yields in submission order
            return list(pool.map(func, self._registry))

    def report(self) -> list[ReadResult]:
        """Return the current value of every entry in registry order."""

        def one(spec: SettingSpec) -> ReadResult:
            value, error = self._read(spec)
            return ReadResult(spec, value, error)

        return self._ordered(one)

    def backup(self) -> list[BackupRecord]:
        """Snapshot every entry's current value in registry order."""

        def one(spec: SettingSpec) -> BackupRecord:
            value, error = self._read(spec)
            return BackupRecord(spec.scope, spec.domain, spec.key, value, error)

        return self._ordered(one)

    # ---- writes ----
    def _write(self, spec: SettingSpec) -> ApplyResult:
        where = f"{spec.scope.describe()} {spec.domain} {spec.key}"
        try:
            self._store.write(spec.scope, spec.domain, spec.key, spec.desired)
        except WriteError as exc:
            logger.warning("write %s failed: %s", where, exc)
            return ApplyResult(spec, exc)
        except (StoreError, OSError, ValueError) as exc:
            logger.warning("write %s failed: %s", where, exc)
            return ApplyResult(spec, WriteError(str(exc)))
        logger.info("wrote %s = %s", where, render_value(spec.desired))
        return ApplyResult(spec)

    def apply(self) -> list[ApplyResult]:
        """Write every desired value, one entry at a time, in registry order.

        A failed entry is recorded and the pass continues.  Nothing is rolled
        back; see :func:`restore_registry`.
        """
        return [self._write(spec) for spec in self._registry]

    def reconcile(self, confirmed: bool) -> Reconciliation:
        """Report, then back up and apply when *confirmed*.

        The backup pass completes before the first write is issued.
        """
        outcome = Reconciliation(report=self.report(), confirmed=confirmed)
        if not confirmed:
            return outcome
        outcome.backup = self.backup()
        outcome.applied = self.apply()
        return outcome


def restore_registry(
    records: Sequence[BackupRecord], *, name: str | None = "restore"
) -> Registry:
    """Build a registry that puts every backed up value back.

    Records that could not be read are skipped; an entry that was absent is
    restored by removing the key.
    """
    specs = [
        SettingSpec(r.domain, r.key, r.scope, r.value)
        for r in records
        if r.ok
    ]
    return Registry(specs, name=name)


__all__ = [
    "ReadResult",
    "BackupRecord",
    "ApplyResult",
    "Reconciliation",
    "ReconciliationEngine",
    "restore_registry",
]
