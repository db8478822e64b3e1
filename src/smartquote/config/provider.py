from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from .loader import ConfigError, RulesConfig, read_config_file, rules_from_mapping

logger = logging.getLogger(__name__)


class RulesProvider:
    """Hand out the current :class:`RulesConfig`, re-reading the file when it changes.

    A reload that fails validation keeps the previous rules in place so a
    half-edited file never reaches the engine.
    """

    def __init__(self, path: Path | None = None, *, initial: RulesConfig | None = None) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self._lock = threading.Lock()
        self._rules: RulesConfig | None = initial
        self._mtime: float | None = None
        self._stale = False
        if initial is not None and self.path is not None:
            self._mtime = self._stat()

    def _stat(self) -> float | None:
        if self.path is None:
            return None
        try:
            return os.path.getmtime(self.path)
        except OSError:
            return None

    def _read(self) -> RulesConfig:
        if self.path is None:
            return rules_from_mapping({})
        raw = read_config_file(self.path)
        return rules_from_mapping(raw.get("rules") or {})

    def current(self) -> RulesConfig:
        with self._lock:
            mtime = self._stat()
            if self._rules is None or self._stale or mtime != self._mtime:
                try:
                    self._rules = self._read()
                except ConfigError:
                    if self._rules is None:
                        raise
                    logger.warning(
                        "Keeping previous rules; reload failed",
                        extra={"event": "rules.reload_failed", "path": str(self.path)},
                        exc_info=True,
                    )
                else:
                    logger.info("Rules loaded", extra={"event": "rules.loaded", "path": str(self.path or "")})
                self._mtime = mtime
                self._stale = False
            return self._rules

    def reload(self) -> RulesConfig:
        """Force invalidation and re-read from disk."""

        with self._lock:
            self._stale = True
        return self.current()


__all__ = ["RulesProvider"]
