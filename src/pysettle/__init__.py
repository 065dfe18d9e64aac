from .engine import (
    ApplyResult,
    BackupRecord,
    ReadResult,
    Reconciliation,
    ReconciliationEngine,
    restore_registry,
)
from .errors import ConfigurationError, ReadError, SettleError, WriteError
from .registry import Registry, SettingSpec, load_registry
from .scope import SYSTEM, Identity, Scope, resolve_identity
from .values import NOT_SET, render_value


__all__ = [
    "ReconciliationEngine",
    "Reconciliation",
    "ReadResult",
    "BackupRecord",
    "ApplyResult",
    "restore_registry",
    "Registry",
    "SettingSpec",
    "load_registry",
    "Scope",
    "SYSTEM",
    "Identity",
    "resolve_identity",
    "NOT_SET",
    "render_value",
    "SettleError",
    "ConfigurationError",
    "ReadError",
    "WriteError",
]
