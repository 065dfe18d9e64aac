"""Declarative setting entries and the ordered registry that holds them."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, overload

try:  # pragma: no cover - Python <3.11
    import tomllib  # type: ignore
except Exception:  # pragma: no cover - fallback
    import tomli as tomllib  # type: ignore

import pyjson5
import tomlkit
import yaml

from .errors import ConfigurationError
from .scope import SYSTEM, Identity, Scope
from .values import NOT_SET, Value, check_value, render_value

Address = tuple[Scope, str, str]

_SCOPE_NAMES = {"system": "system", "identity": "identity", "user": "identity"}


@dataclass(frozen=True)
class SettingSpec:
    """A single desired preference."""

    domain: str
    key: str
    scope: Scope
    desired: Value
    expected_label: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.domain, str) or not self.domain.strip():
            raise ConfigurationError("setting domain must be a non-empty string")
        if not isinstance(self.key, str) or not self.key.strip():
            raise ConfigurationError(
                f"setting key in {self.domain!r} must be a non-empty string"
            )
        if not isinstance(self.scope, Scope):
            raise ConfigurationError(f"invalid scope for {self.domain} {self.key}")
        check_value(self.desired)
        if self.expected_label is None:
            object.__setattr__(self, "expected_label", render_value(self.desired))

    @property
    def address(self) -> Address:
        return (self.scope, self.domain, self.key)


class Registry(Sequence[SettingSpec]):
    """Immutable, ordered collection of :class:`SettingSpec` entries.

    No two entries may target the same ``(scope, domain, key)`` address.
    """

    def __init__(self, specs: Iterable[SettingSpec], *, name: str | None = None) -> None:
        self.name = name
        self._specs: tuple[SettingSpec, ...] = tuple(specs)
        seen: set[Address] = set()
        for spec in self._specs:
            if not isinstance(spec, SettingSpec):
                raise ConfigurationError(f"not a setting entry: {spec!r}")
            if spec.address in seen:
                raise ConfigurationError(
                    f"duplicate entry for {spec.scope.describe()} {spec.domain} {spec.key}"
                )
            seen.add(spec.address)

    @overload
    def __getitem__(self, index: int) -> SettingSpec: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[SettingSpec, ...]: ...

    def __getitem__(self, index):
        return self._specs[index]

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[SettingSpec]:
        return iter(self._specs)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"Registry(name={self.name!r}, entries={len(self)})"


# ---------------------------------------------------------------------------
# Loading from structured files
# ---------------------------------------------------------------------------


def _parse_document(path: Path) -> Any:
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
        if suffix == ".toml":
            return tomllib.loads(text)
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(text)
        if suffix == ".json5":
            return pyjson5.decode(text)
        if suffix == ".json":
            return json.loads(text)
    except Exception as exc:  # decoder specific errors
        raise ConfigurationError(f"{path}: {exc}") from exc
    raise ConfigurationError(f"No registry format for {path.suffix}")


def _scope_from(raw: Any, identity: Identity | None, where: str) -> Scope:
    kind = _SCOPE_NAMES.get(str(raw).strip().lower()) if raw is not None else None
    if kind is None:
        raise ConfigurationError(f"{where}: unknown scope {raw!r}")
    if kind == "system":
        return SYSTEM
    if identity is None:
        raise ConfigurationError(f"{where}: identity scope needs a resolved identity")
    return Scope.for_identity(identity)


def spec_from_mapping(
    entry: Mapping[str, Any], identity: Identity | None, *, where: str = "entry"
) -> SettingSpec:
    """Build a :class:`SettingSpec` from a loaded mapping.

    A missing ``desired`` value means the key should be removed.
    """

    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"{where}: expected a mapping, got {type(entry).__name__}")
    unknown = set(entry) - {"scope", "domain", "key", "desired", "expected"}
    if unknown:
        raise ConfigurationError(f"{where}: unknown fields {sorted(unknown)}")
    scope = _scope_from(entry.get("scope"), identity, where)
    desired = entry.get("desired", NOT_SET)
    if desired is None:
        desired = NOT_SET
    expected = entry.get("expected")
    return SettingSpec(
        domain=entry.get("domain", ""),
        key=entry.get("key", ""),
        scope=scope,
        desired=desired,
        expected_label=None if expected is None else str(expected),
    )


def registry_from_document(
    data: Any, identity: Identity | None, *, name: str | None = None
) -> Registry:
    if isinstance(data, Mapping):
        name = data.get("name", name)
        entries = data.get("settings")
    else:
        entries = data
    if not isinstance(entries, list):
        raise ConfigurationError("registry must contain a list of settings")
    specs = [
        spec_from_mapping(entry, identity, where=f"setting #{i + 1}")
        for i, entry in enumerate(entries)
    ]
    return Registry(specs, name=name)


def load_registry(path: Path | str, identity: Identity | None = None) -> Registry:
    """Load a registry from a TOML, YAML, JSON or JSON5 file."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"registry file not found: {path}")
    return registry_from_document(_parse_document(path), identity, name=path.stem)


def dump_registry_toml(registry: Registry) -> str:
    """Return *registry* as a TOML document accepted by :func:`load_registry`."""
    doc = tomlkit.document()
    if registry.name:
        doc.add("name", registry.name)
    settings = tomlkit.aot()
    for spec in registry:
        table = tomlkit.table()
        table.add("scope", spec.scope.kind)
        table.add("domain", spec.domain)
        table.add("key", spec.key)
        if spec.desired is not NOT_SET:
            table.add("desired", spec.desired)
        if spec.expected_label != render_value(spec.desired):
            table.add("expected", spec.expected_label)
        settings.append(table)
    doc.add("settings", settings)
    return tomlkit.dumps(doc)


__all__ = [
    "SettingSpec",
    "Registry",
    "spec_from_mapping",
    "registry_from_document",
    "load_registry",
    "dump_registry_toml",
]
