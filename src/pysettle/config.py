from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from .registry import Registry
from .scope import Identity
from .stores.base import PreferenceStore

logger = logging.getLogger(__name__)

DEFAULT_STORE = "defaults"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class EngineConfig:
    """Everything an engine run needs, resolved up front by the caller."""

    registry: Registry
    store: PreferenceStore
    identity: Identity | None = None
    max_workers: int = 1


@dataclass(frozen=True)
class Settings:
    """Caller side defaults, overridable through ``PYSETTLE_*`` variables."""

    store: str = DEFAULT_STORE
    preset: str = "privacy"
    timeout: float = DEFAULT_TIMEOUT
    workers: int = 1


def settings_from_env(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    base = Settings()
    timeout = base.timeout
    raw_timeout = env.get("PYSETTLE_TIMEOUT")
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            logger.warning("ignoring invalid PYSETTLE_TIMEOUT=%r", raw_timeout)
    workers = base.workers
    raw_workers = env.get("PYSETTLE_WORKERS")
    if raw_workers:
        try:
            workers = max(1, int(raw_workers))
        except ValueError:
            logger.warning("ignoring invalid PYSETTLE_WORKERS=%r", raw_workers)
    return Settings(
        store=env.get("PYSETTLE_STORE", base.store),
        preset=env.get("PYSETTLE_PRESET", base.preset),
        timeout=timeout,
        workers=workers,
    )
