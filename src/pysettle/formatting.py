"""Text renderings for report, backup and apply output."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from .engine import ApplyResult, BackupRecord, ReadResult
from .scope import Identity
from .values import render_value

ERROR_TEXT = "error"


def report_line(result: ReadResult) -> str:
    spec = result.spec
    current = render_value(result.value) if result.ok else ERROR_TEXT
    return (
        f"{spec.scope.describe()} • {spec.domain} {spec.key} = {current}"
        f" (desired: {spec.expected_label})"
    )


def backup_line(record: BackupRecord) -> str:
    current = render_value(record.value) if record.ok else ERROR_TEXT
    return f"{record.scope_label} • {record.domain} {record.key} = {current}"


def apply_line(result: ApplyResult) -> str:
    if result.ok:
        return result.confirmation or ""
    spec = result.spec
    return f" ! {spec.domain} {spec.key} failed: {result.error}"


def backup_text(
    records: Iterable[BackupRecord],
    identity: Identity | None,
    when: datetime | None = None,
) -> str:
    """Return the backup artifact: a header followed by one line per record."""
    stamp = (when or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    lines = [
        f"=== Preference Backup - {stamp} ===",
        f"Identity: {identity.name if identity is not None else '-'}",
        "",
    ]
    lines.extend(backup_line(r) for r in records)
    return "\n".join(lines) + "\n"


def write_backup(
    path: Path,
    records: Iterable[BackupRecord],
    identity: Identity | None,
    when: datetime | None = None,
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = backup_text(records, identity, when)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8") as fh:
            fh.write(text)
        tmp.replace(path)
    finally:
        tmp.unlink(missing_ok=True)
    return path
