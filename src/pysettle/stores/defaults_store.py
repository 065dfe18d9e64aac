"""Store backed by the macOS ``defaults`` command line tool."""
from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Sequence

from ..errors import ReadError, StoreError, WriteError
from ..scope import Scope
from ..values import NOT_SET, Value, parse_bool_text, serialize_text
from . import register_store
from .base import PreferenceStore

logger = logging.getLogger("pysettle.stores.defaults")

DEFAULT_TIMEOUT = 10.0

# ``defaults`` reports absent keys and domains on stderr with a non-zero exit:
# "The domain/default pair of (d, k) does not exist", "Domain d does not exist"
# or "Domain (d) not found.".  Lines from sudo itself never mean "missing".
_MISSING = re.compile(r"does not exist|^Domain\b.*\bnot found", re.IGNORECASE)


def _is_missing(stderr: str) -> bool:
    for line in stderr.splitlines():
        line = line.strip()
        if line.lower().startswith("sudo:"):
            continue
        if _MISSING.search(line):
            return True
    return False


def _describe_failure(proc: subprocess.CompletedProcess) -> str:
    detail = (proc.stderr or proc.stdout or "").strip()
    return detail or f"exit status {proc.returncode}"


@register_store
class DefaultsStore(PreferenceStore):
    """Read and write preferences through ``defaults``.

    Identity scoped commands run as that identity via ``sudo -u`` unless the
    process already runs under the identity's uid.
    """

    kind = "defaults"

    def __init__(
        self,
        *,
        executable: str = "defaults",
        sudo: str = "sudo",
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> None:
        self.executable = executable
        self.sudo = sudo
        self.timeout = timeout

    def command(self, scope: Scope, *args: str) -> list[str]:
        argv = [self.executable, *args]
        identity = scope.identity
        if identity is None:
            return argv
        if identity.uid is not None and identity.uid == os.geteuid():
            return argv
        return [self.sudo, "-n", "-u", identity.name, "-H", *argv]

    def _run(
        self, argv: Sequence[str], error: type[StoreError]
    ) -> subprocess.CompletedProcess:
        logger.debug("running %s", argv)
        try:
            return subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise error(f"timed out after {self.timeout}s: {' '.join(argv)}") from exc
        except OSError as exc:
            raise error(f"cannot run {argv[0]}: {exc}") from exc

    def read(self, scope: Scope, domain: str, key: str) -> Value:
        proc = self._run(self.command(scope, "read-type", domain, key), ReadError)
        if proc.returncode != 0:
            if _is_missing(proc.stderr or ""):
                return NOT_SET
            raise ReadError(_describe_failure(proc))
        kind = proc.stdout.strip().removeprefix("Type is ").strip()

        proc = self._run(self.command(scope, "read", domain, key), ReadError)
        if proc.returncode != 0:
            if _is_missing(proc.stderr or ""):
                return NOT_SET
            raise ReadError(_describe_failure(proc))
        raw = proc.stdout.strip()
        if kind == "boolean":
            try:
                return parse_bool_text(raw)
            except ValueError as exc:
                raise ReadError(str(exc)) from exc
        return raw

    def write(self, scope: Scope, domain: str, key: str, value: Value) -> None:
        if value is NOT_SET:
            proc = self._run(self.command(scope, "delete", domain, key), WriteError)
            if proc.returncode != 0 and not _is_missing(proc.stderr or ""):
                raise WriteError(_describe_failure(proc))
            return
        flag = "-bool" if isinstance(value, bool) else "-string"
        argv = self.command(scope, "write", domain, key, flag, serialize_text(value))
        proc = self._run(argv, WriteError)
        if proc.returncode != 0:
            raise WriteError(_describe_failure(proc))
