from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from platformdirs import user_log_dir as _ulog, user_state_dir as _ustate

APP_NAME = "pysettle"

LOG_FILENAME = "pysettle.log"
BACKUP_PATTERN = "backup_{stamp}.txt"

# ---------------------------------------------------------------------------
# Log and backup locations
# ---------------------------------------------------------------------------

def log_dir() -> Path:
    env = os.getenv("PYSETTLE_LOG_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return Path(_ulog(appname=APP_NAME)).resolve()

def log_file() -> Path:
    return log_dir() / LOG_FILENAME

def backup_dir() -> Path:
    env = os.getenv("PYSETTLE_BACKUP_DIR")
    if env:
        return Path(env).expanduser().resolve()
    return Path(_ustate(appname=APP_NAME)).resolve() / "backups"

def backup_file(when: datetime | None = None, directory: Path | None = None) -> Path:
    """Return a timestamped backup path such as ``backup_20240131_120000.txt``."""
    stamp = (when or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return (directory or backup_dir()) / BACKUP_PATTERN.format(stamp=stamp)
