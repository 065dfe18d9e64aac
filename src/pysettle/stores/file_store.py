"""Preference stores backed by plain files.

The system scope maps to a single file.  Each identity gets its own file
below its home directory, so two identities never share storage.  Domains
become sections (or top level mappings) and keys become entries.
"""
from __future__ import annotations

import configparser
import json
import logging
import os
from abc import abstractmethod
from collections.abc import Mapping
from io import StringIO
from pathlib import Path
from typing import Any

import yaml

from ..errors import ReadError, WriteError
from ..scope import Scope, is_privileged
from ..values import NOT_SET, Value, parse_text, serialize_text
from . import file_format_for_path, register_file_format, register_store
from .base import PreferenceStore

logger = logging.getLogger("pysettle.stores.file")

Document = dict[str, dict[str, Value]]

IDENTITY_DIR = Path(".config") / "pysettle"

_INI_DEFAULTS = "__pysettle_defaults__"


def _coerce(value: Any) -> Value:
    if value is None:
        return NOT_SET
    if isinstance(value, (bool, str)):
        return value
    return str(value)


def _same(current: Value, value: Value) -> bool:
    return type(current) is type(value) and current == value


@register_store
class FileStore(PreferenceStore):
    """Base class for file stores; ``FileStore.from_options`` picks a format
    from the suffix of ``system_path``."""

    kind = "file"
    suffixes: tuple[str, ...] = ()

    def __init__(
        self,
        system_path: Path | str,
        *,
        identity_path: Path | str | None = None,
        hand_over: bool | None = None,
    ) -> None:
        self.system_path = Path(system_path)
        if identity_path is None:
            suffix = self.suffixes[0] if self.suffixes else self.system_path.suffix
            identity_path = IDENTITY_DIR / f"preferences{suffix}"
        self.identity_path = Path(identity_path)
        if self.identity_path.is_absolute() or ".." in self.identity_path.parts:
            raise ValueError("identity_path must stay inside the identity home")
        self._hand_over = hand_over

    @classmethod
    def from_options(cls, **options) -> PreferenceStore:
        if cls is FileStore:
            target = file_format_for_path(Path(options["system_path"]))
            return target(**options)
        return cls(**options)

    # ---- format hooks ----
    @abstractmethod
    def load(self, path: Path) -> Document:
        """Return the parsed document at *path* or an empty one if missing.

        Malformed content raises :class:`ValueError`.
        """

    @abstractmethod
    def dump(self, data: Document) -> str:
        pass

    def check_address(self, domain: str, key: str) -> None:
        """Raise :class:`ValueError` if the format cannot hold *domain*/*key*."""

    # ---- addressing ----
    def path_for(self, scope: Scope) -> Path:
        if scope.identity is None:
            return self.system_path
        return scope.identity.home / self.identity_path

    def _confine(self, path: Path, scope: Scope) -> None:
        # Identity files must stay below the identity's home: no component
        # under home may be a symlink the identity could point elsewhere.
        if scope.identity is None:
            return
        current = scope.identity.home
        for part in path.relative_to(current).parts:
            current = current / part
            if current.is_symlink():
                raise OSError(f"refusing to follow symlink {current}")

    def read(self, scope: Scope, domain: str, key: str) -> Value:
        path = self.path_for(scope)
        try:
            self.check_address(domain, key)
            self._confine(path, scope)
            data = self.load(path)
        except (OSError, ValueError) as exc:
            raise ReadError(f"{path}: {exc}") from exc
        return data.get(domain, {}).get(key, NOT_SET)

    def write(self, scope: Scope, domain: str, key: str, value: Value) -> None:
        path = self.path_for(scope)
        try:
            self.check_address(domain, key)
            self._confine(path, scope)
            data = self.load(path)
        except (OSError, ValueError) as exc:
            raise WriteError(f"{path}: {exc}") from exc
        section = data.get(domain, {})
        current = section.get(key, NOT_SET)
        if current is NOT_SET and value is NOT_SET:
            return
        if value is not NOT_SET and _same(current, value):
            logger.debug("%s %s already %r in %s", domain, key, value, path)
            return
        if value is NOT_SET:
            del section[key]
            if not section:
                data.pop(domain, None)
        else:
            data.setdefault(domain, section)[key] = value
        try:
            self._save(path, data, scope)
        except (OSError, ValueError, TypeError) as exc:
            raise WriteError(f"{path}: {exc}") from exc

    # ---- persistence ----
    def _owner(self, scope: Scope) -> tuple[int, int] | None:
        identity = scope.identity
        if identity is None or identity.uid is None:
            return None
        hand_over = is_privileged() if self._hand_over is None else self._hand_over
        if not hand_over:
            return None
        return identity.uid, identity.gid if identity.gid is not None else -1

    def _save(self, path: Path, data: Document, scope: Scope) -> None:
        text = self.dump(data)
        owner = self._owner(scope)
        missing = [p for p in (path.parent, *path.parent.parents) if not p.exists()]
        path.parent.mkdir(parents=True, exist_ok=True)
        self._confine(path, scope)
        if owner is not None and scope.identity is not None:
            home = scope.identity.home
            for created in missing:
                if home in created.parents:
                    os.chown(created, *owner)
        tmp = path.with_suffix(path.suffix + ".tmp")
        # a stale or planted temp file is removed, never written through
        tmp.unlink(missing_ok=True)
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
        try:
            with os.fdopen(os.open(tmp, flags, 0o644), "w", encoding="utf-8") as fh:
                if owner is not None:
                    os.fchown(fh.fileno(), *owner)
                fh.write(text)
            tmp.replace(path)
        finally:
            tmp.unlink(missing_ok=True)


@register_file_format
class IniFileStore(FileStore):
    """INI file store; booleans are written as ``true``/``false``."""

    suffixes = (".ini",)

    def check_address(self, domain: str, key: str) -> None:
        if (
            not domain
            or domain != domain.strip()
            or "]" in domain
            or any(c in domain for c in "\r\n")
            or domain == _INI_DEFAULTS
        ):
            raise ValueError(f"domain {domain!r} cannot be stored as an INI section")
        if (
            not key
            or key != key.strip()
            or key[0] in "#;["
            or any(c in key for c in "=:\r\n")
        ):
            raise ValueError(f"key {key!r} cannot be stored as an INI option")

    def _parser(self) -> configparser.ConfigParser:
        parser = configparser.ConfigParser(
            interpolation=None, default_section=_INI_DEFAULTS
        )
        parser.optionxform = str  # type: ignore[assignment, method-assign]
        return parser

    def load(self, path: Path) -> Document:
        parser = self._parser()
        if not path.exists():
            return {}
        try:
            parser.read(path, encoding="utf-8")
        except configparser.Error as exc:
            raise ValueError(str(exc)) from exc
        return {
            section: {k: parse_text(v) for k, v in parser.items(section)}
            for section in parser.sections()
        }

    def dump(self, data: Document) -> str:
        parser = self._parser()
        for section in sorted(data):
            parser.add_section(section)
            for k, v in sorted(data[section].items()):
                parser.set(section, k, serialize_text(v))
        buf = StringIO()
        parser.write(buf)
        return buf.getvalue()


def _document(raw: Any, path: Path) -> Document:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Root of {path.name} must be a mapping")
    out: Document = {}
    for domain, entries in raw.items():
        if not isinstance(entries, Mapping):
            raise ValueError(f"domain {domain!r} must map keys to values")
        out[str(domain)] = {str(k): _coerce(v) for k, v in entries.items()}
    return out


@register_file_format
class YamlFileStore(FileStore):
    suffixes = (".yaml", ".yml")

    def load(self, path: Path) -> Document:
        if not path.exists():
            return {}
        raw = path.read_text(encoding="utf-8")
        if raw.strip() == "":
            return {}
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ValueError(str(exc)) from exc
        return _document(data, path)

    def dump(self, data: Document) -> str:
        return yaml.safe_dump(data, sort_keys=True, allow_unicode=True)


@register_file_format
class JsonFileStore(FileStore):
    suffixes = (".json",)

    def load(self, path: Path) -> Document:
        if not path.exists():
            return {}
        raw = path.read_text(encoding="utf-8")
        if raw.strip() == "":
            return {}
        return _document(json.loads(raw), path)

    def dump(self, data: Document) -> str:
        return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
