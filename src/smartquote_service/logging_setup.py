from __future__ import annotations

import os
from pathlib import Path

LOG_FILE_ENV_VAR = "SMARTQUOTE_LOG_FILE"
LOG_DIR_ENV_VAR = "SMARTQUOTE_LOG_DIR"
LOG_FILE_NAME = "service.log"


def _env_path(name: str) -> Path | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    return Path(os.path.expandvars(raw)).expanduser()


def _platform_log_dir() -> Path:
    if os.name == "nt":
        base = _env_path("LOCALAPPDATA") or Path.home() / "AppData" / "Local"
        return base / "SmartQuote" / "logs"
    # quotes are per-user state, not shared data
    base = _env_path("XDG_STATE_HOME") or Path.home() / ".local" / "state"
    return base / "smartquote" / "logs"


def resolve_log_file() -> Path:
    """Pick the service log file.

    ``SMARTQUOTE_LOG_FILE`` names the file outright; ``SMARTQUOTE_LOG_DIR``
    keeps the default file name in another directory. Otherwise the
    per-user state directory of the platform is used.
    """
    explicit = _env_path(LOG_FILE_ENV_VAR)
    if explicit is not None:
        return explicit
    directory = _env_path(LOG_DIR_ENV_VAR) or _platform_log_dir()
    return directory / LOG_FILE_NAME


def resolve_log_dir() -> Path:
    return resolve_log_file().parent


__all__ = ["LOG_DIR_ENV_VAR", "LOG_FILE_ENV_VAR", "LOG_FILE_NAME", "resolve_log_dir", "resolve_log_file"]
