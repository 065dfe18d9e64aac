from __future__ import annotations

import getpass
import logging
import os
import pwd
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from .errors import ConfigurationError, IdentityError

logger = logging.getLogger("pysettle.scope")

ScopeKind = Literal["system", "identity"]


@dataclass(frozen=True)
class Identity:
    """A resolved, non-privileged user account."""

    name: str
    home: Path
    uid: int | None = None
    gid: int | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise IdentityError("identity name must not be empty")
        object.__setattr__(self, "home", Path(self.home))


@dataclass(frozen=True)
class Scope:
    """Where a preference lives: machine wide or bound to one identity."""

    kind: ScopeKind
    identity: Identity | None = None

    def __post_init__(self) -> None:
        if self.kind == "system":
            if self.identity is not None:
                raise ConfigurationError("system scope does not take an identity")
        elif self.kind == "identity":
            if self.identity is None:
                raise ConfigurationError("identity scope requires a resolved identity")
        else:
            raise ConfigurationError(f"unknown scope {self.kind!r}")

    @classmethod
    def for_identity(cls, identity: Identity) -> "Scope":
        return cls("identity", identity)

    @property
    def is_system(self) -> bool:
        return self.kind == "system"

    @property
    def label(self) -> str:
        return "System" if self.is_system else "User"

    def describe(self) -> str:
        """Return the label used in report and backup lines."""
        if self.identity is None:
            return self.label
        return f"{self.label} ({self.identity.name})"


SYSTEM = Scope("system")


def is_privileged() -> bool:
    """Return ``True`` when running with an effective uid of 0."""
    return os.geteuid() == 0


def resolve_identity(
    name: str | None = None, *, environ: Mapping[str, str] | None = None
) -> Identity:
    """Resolve the user on whose behalf per-user preferences are handled.

    *name* wins when given.  Otherwise ``SUDO_USER`` is used, falling back to
    the current login name.  The privileged account itself is never a valid
    target.
    """

    env = os.environ if environ is None else environ
    candidate = name or env.get("SUDO_USER") or getpass.getuser()
    try:
        entry = pwd.getpwnam(candidate)
    except KeyError as exc:
        raise IdentityError(f"unknown user {candidate!r}") from exc
    if entry.pw_uid == 0:
        raise IdentityError(
            "Cannot determine original user. Run with sudo as a non-root user."
        )
    identity = Identity(
        name=entry.pw_name,
        home=Path(entry.pw_dir),
        uid=entry.pw_uid,
        gid=entry.pw_gid,
    )
    logger.debug("resolved identity %s (home %s)", identity.name, identity.home)
    return identity


__all__ = [
    "Identity",
    "Scope",
    "SYSTEM",
    "is_privileged",
    "resolve_identity",
]
