"""Typed preference values.

Every value that flows through the engine is one of three things: a
boolean, a string, or :data:`NOT_SET` for an absent key.  Stores convert
their native representation into this union and all user facing output
goes through :func:`render_value`.
"""

from __future__ import annotations

from typing import Any, Union

from .errors import ConfigurationError


class _NotSet:
    """Marker for a key that is absent from its store."""

    _instance: "_NotSet | None" = None

    def __new__(cls) -> "_NotSet":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_SET"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "NOT_SET"


NOT_SET = _NotSet()

Value = Union[bool, str, _NotSet]

_TRUE_WORDS = {"1", "true", "yes"}
_FALSE_WORDS = {"0", "false", "no"}


def is_value(value: Any) -> bool:
    """Return ``True`` if *value* belongs to the :data:`Value` union."""
    return value is NOT_SET or isinstance(value, (bool, str))


def check_value(value: Any) -> Value:
    """Return *value* unchanged or raise :class:`ConfigurationError`."""
    if not is_value(value):
        raise ConfigurationError(
            f"unsupported value {value!r}; expected bool, str or NOT_SET"
        )
    return value


def render_value(value: Value) -> str:
    """Return the canonical display text for *value*."""
    if value is NOT_SET:
        return "not set"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_text(raw: str | None) -> Value:
    """Parse stored text into a value.

    ``None`` means the key is absent.  The words ``true`` and ``false`` are
    read as booleans, anything else stays a string.
    """
    if raw is None:
        return NOT_SET
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return raw


def serialize_text(value: Value) -> str:
    if value is NOT_SET:
        raise ValueError("NOT_SET has no stored form")
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def parse_bool_text(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean: {raw!r}")


__all__ = [
    "NOT_SET",
    "Value",
    "is_value",
    "check_value",
    "render_value",
    "parse_text",
    "serialize_text",
    "parse_bool_text",
]
