from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from .config import EngineConfig, settings_from_env
from .engine import ReconciliationEngine
from .errors import (
    ConfigurationError,
    IdentityError,
    PrivilegeError,
    UnknownStoreError,
)
from .formatting import apply_line, backup_line, report_line, write_backup
from .paths import backup_dir, backup_file, log_file
from .presets import PRESETS, preset_registry
from .registry import Registry, dump_registry_toml, load_registry
from .scope import Identity, is_privileged, resolve_identity
from .stores import create_store, store_kinds

out = logging.getLogger("pysettle.cli")

EXIT_OK = 0
EXIT_PRIVILEGE = 1
EXIT_CONFIG = 2
EXIT_PARTIAL = 3
EXIT_BACKUP = 4

PROMPT = "Do you want to back up the current settings and apply the desired values? (y/n): "


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@contextmanager
def logging_session(path: Path | None, *, verbose: bool = False):
    """Print CLI lines to stdout and copy everything to the log file at *path*.

    The log file always receives DEBUG records, so every read and write is
    kept there; *verbose* only widens what reaches stderr.
    """

    root = logging.getLogger("pysettle")
    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("%(message)s"))
    out.addHandler(console)

    errors = logging.StreamHandler(sys.stderr)
    errors.setLevel(logging.DEBUG if verbose else logging.WARNING)
    errors.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    errors.addFilter(lambda record: not record.name.startswith(out.name))
    root.addHandler(errors)
    handlers.append(errors)

    if path is not None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as exc:
            print(f"Cannot open log file {path}: {exc}", file=sys.stderr)
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
            root.addHandler(file_handler)
            handlers.append(file_handler)

    old_level = root.level
    root.setLevel(logging.DEBUG)
    try:
        yield
    finally:
        root.setLevel(old_level)
        out.removeHandler(console)
        for handler in handlers:
            root.removeHandler(handler)
            handler.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_privilege() -> None:
    if not is_privileged():
        raise PrivilegeError("This command must be run as root (use sudo).")


def _registry(args: argparse.Namespace, identity: Identity | None) -> Registry:
    if args.registry is not None:
        return load_registry(args.registry, identity)
    return preset_registry(args.preset, identity)


def _store(args: argparse.Namespace):
    if args.store == "defaults":
        return create_store("defaults", timeout=args.timeout)
    if args.store == "file":
        if args.system_file is None:
            raise ConfigurationError("--system-file is required for the file store")
        return create_store(
            "file", system_path=args.system_file, identity_path=args.identity_file
        )
    return create_store(args.store)


def _prepare(args: argparse.Namespace) -> EngineConfig:
    _require_privilege()
    identity = resolve_identity(args.user)
    return EngineConfig(
        registry=_registry(args, identity),
        store=_store(args),
        identity=identity,
        max_workers=args.workers,
    )


def _log_path(args: argparse.Namespace) -> Path | None:
    if args.no_log:
        return None
    return args.log_file or log_file()


def _confirm(question: str = PROMPT) -> bool:
    try:
        answer = input(question)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _print_report(engine: ReconciliationEngine) -> None:
    out.info("")
    out.info("=== CURRENT SETTINGS REPORT ===")
    for result in engine.report():
        out.info(report_line(result))
    out.info("")
    out.info("=== END REPORT ===")


def _save_backup(
    engine: ReconciliationEngine, config: EngineConfig, target: Path
) -> bool:
    records = engine.backup()
    try:
        write_backup(target, records, config.identity)
    except OSError as exc:
        out.error("Backup failed: %s", exc)
        return False
    for record in records:
        if not record.ok:
            out.warning("Could not read %s", backup_line(record))
    return True


def _backup_and_apply(
    engine: ReconciliationEngine, config: EngineConfig, args: argparse.Namespace
) -> int:
    target = backup_file(directory=args.backup_dir or backup_dir())
    out.info("")
    out.info("Backing up current settings to: %s", target)
    if not _save_backup(engine, config, target):
        out.error("No changes applied.")
        return EXIT_BACKUP
    out.info("Backup complete.")
    out.info("")
    out.info("Applying changes...")
    results = engine.apply()
    for result in results:
        if result.ok:
            out.info(apply_line(result))
        else:
            out.warning(apply_line(result))
    failed = sum(1 for r in results if not r.ok)
    if failed:
        out.warning("%d of %d changes failed.", failed, len(results))
    else:
        out.info("Changes applied. Some may require logout/reboot to take effect.")
    out.info("Backup saved to: %s", target)
    return EXIT_PARTIAL if failed else EXIT_OK


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def report_cmd(args: argparse.Namespace) -> int:
    config = _prepare(args)
    engine = ReconciliationEngine.from_config(config)
    path = _log_path(args)
    with logging_session(path, verbose=args.verbose):
        _print_report(engine)
        if path is not None:
            out.info("Log saved to: %s", path)
    return EXIT_OK


def backup_cmd(args: argparse.Namespace) -> int:
    config = _prepare(args)
    engine = ReconciliationEngine.from_config(config)
    with logging_session(_log_path(args), verbose=args.verbose):
        target = backup_file(directory=args.backup_dir or backup_dir())
        if not _save_backup(engine, config, target):
            return EXIT_BACKUP
        out.info("Backup saved to: %s", target)
    return EXIT_OK


def apply_cmd(args: argparse.Namespace) -> int:
    config = _prepare(args)
    engine = ReconciliationEngine.from_config(config)
    with logging_session(_log_path(args), verbose=args.verbose):
        if not (args.yes or _confirm()):
            out.info("No changes or backup applied.")
            return EXIT_OK
        return _backup_and_apply(engine, config, args)


def run_cmd(args: argparse.Namespace) -> int:
    config = _prepare(args)
    engine = ReconciliationEngine.from_config(config)
    path = _log_path(args)
    with logging_session(path, verbose=args.verbose):
        out.info("=== Preference Report - %s ===", datetime.now().strftime("%c"))
        _print_report(engine)
        if path is not None:
            out.info("Log saved to: %s", path)
        if not (args.yes or _confirm()):
            out.info("No changes or backup applied.")
            status = EXIT_OK
        else:
            status = _backup_and_apply(engine, config, args)
        out.info("Done.")
    return status


def registry_cmd(args: argparse.Namespace) -> int:
    try:
        identity: Identity | None = resolve_identity(args.user)
    except IdentityError:
        identity = Identity(name=args.user or "user", home=Path.home())
    registry = _registry(args, identity)
    if args.format == "toml":
        print(dump_registry_toml(registry), end="")
        return EXIT_OK
    for spec in registry:
        print(f"{spec.scope.describe()} • {spec.domain} {spec.key} -> {spec.expected_label}")
    return EXIT_OK


def paths_cmd(args: argparse.Namespace) -> int:
    data = {"log_file": log_file(), "backup_dir": backup_dir()}
    if args.as_json:
        print(json.dumps({k: str(v) for k, v in data.items()}))
    else:
        for k, v in data.items():
            print(f"{k}: {v}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {text!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def _registry_options(settings) -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    source = parent.add_mutually_exclusive_group()
    source.add_argument(
        "--preset", choices=sorted(PRESETS), default=settings.preset,
        help="Compiled-in registry to use",
    )
    source.add_argument("--registry", type=Path, help="Registry file (toml, yaml, json, json5)")
    parent.add_argument("--user", help="Target user (defaults to SUDO_USER)")
    return parent


def _engine_options(settings) -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--store", choices=store_kinds(), default=settings.store)
    parent.add_argument("--system-file", type=Path, help="System scope file for --store file")
    parent.add_argument(
        "--identity-file", type=Path, default=None,
        help="Per-user file relative to the user's home for --store file",
    )
    parent.add_argument("--timeout", type=float, default=settings.timeout)
    parent.add_argument("--workers", type=_positive_int, default=settings.workers)
    parent.add_argument("--log-file", type=Path, default=None)
    parent.add_argument("--no-log", action="store_true", help="Do not write a log file")
    parent.add_argument("-v", "--verbose", action="store_true")
    return parent


def build_parser(prog: str = "settle") -> argparse.ArgumentParser:
    settings = settings_from_env()
    parser = argparse.ArgumentParser(
        prog=prog, description="Report, back up and apply preference settings."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    reg = _registry_options(settings)
    eng = _engine_options(settings)

    p_report = subparsers.add_parser("report", parents=[reg, eng], help="Show current values.")
    p_report.set_defaults(func=report_cmd)

    p_backup = subparsers.add_parser("backup", parents=[reg, eng], help="Write a backup file.")
    p_backup.add_argument("--backup-dir", type=Path, default=None)
    p_backup.set_defaults(func=backup_cmd)

    p_apply = subparsers.add_parser(
        "apply", parents=[reg, eng], help="Back up, then apply desired values."
    )
    p_apply.add_argument("--backup-dir", type=Path, default=None)
    p_apply.add_argument("-y", "--yes", action="store_true", help="Do not prompt")
    p_apply.set_defaults(func=apply_cmd)

    p_run = subparsers.add_parser(
        "run", parents=[reg, eng], help="Report, prompt, then back up and apply."
    )
    p_run.add_argument("--backup-dir", type=Path, default=None)
    p_run.add_argument("-y", "--yes", action="store_true", help="Do not prompt")
    p_run.set_defaults(func=run_cmd)

    p_registry = subparsers.add_parser("registry", parents=[reg], help="List or export the registry.")
    p_registry.add_argument("--format", choices=["text", "toml"], default="text")
    p_registry.set_defaults(func=registry_cmd)

    p_paths = subparsers.add_parser("paths", help="Show log and backup locations.")
    p_paths.add_argument("--json", dest="as_json", action="store_true")
    p_paths.set_defaults(func=paths_cmd)

    return parser


def main(argv: list[str] | None = None, prog: str = "settle") -> int:
    parser = build_parser(prog)
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 1
    try:
        return int(func(args))
    except (PrivilegeError, IdentityError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_PRIVILEGE
    except (ConfigurationError, UnknownStoreError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except SystemExit as exc:  # pragma: no cover - argparse may raise
        return int(exc.code)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
