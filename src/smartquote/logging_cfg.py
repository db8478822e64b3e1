from __future__ import annotations

import logging
import logging.config
import os
import sys
from pathlib import Path

LOG_LEVEL_ENV_VAR = "SMARTQUOTE_LOG_LEVEL"

# extras the resolver and catalogue attach to their records
CONTEXT_FIELDS = ("event", "code", "key", "family", "attempt", "path")

# package loggers whose level is set explicitly rather than inherited
OWN_LOGGERS = ("smartquote", "smartquote_service")


def _context_suffix(record: logging.LogRecord) -> str:
    parts = []
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is None or value == "":
            continue
        parts.append(f"{name}={value}")
    return f" [{' '.join(parts)}]" if parts else ""


class ContextFormatter(logging.Formatter):
    """Plain formatter that appends the quote context carried in ``extra``."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return super().format(record) + _context_suffix(record)


class ColorFormatter(ContextFormatter):
    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[1;31m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        msg = super().format(record)
        color = self.COLORS.get(record.levelname)
        if color and sys.stderr.isatty():
            return f"{color}{msg}{self.RESET}"
        return msg


def configure(level: str | None = None, log_file: Path | None = None) -> Path | None:
    """Set up CLI logging.

    Console output goes to stderr so JSON written to stdout stays parseable.
    ``log_file`` adds a rotating file that always records INFO and above,
    whatever the console level.
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "WARNING").strip().upper()
    console_level = getattr(logging, level_name, logging.WARNING)
    handlers: dict[str, dict] = {
        'console': {
            'class': 'logging.StreamHandler',
            'stream': 'ext://sys.stderr',
            'formatter': 'color',
            'level': console_level,
        },
    }
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': str(log_file),
            'maxBytes': 1_000_000,
            'backupCount': 5,
            'encoding': 'utf-8',
            'formatter': 'context',
            'level': min(console_level, logging.INFO),
        }

    root_level = min(handler['level'] for handler in handlers.values())

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'context': {
                '()': ContextFormatter,
                'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
            },
            'color': {
                '()': ColorFormatter,
                'format': '%(levelname)s %(name)s: %(message)s',
            },
        },
        'handlers': handlers,
        'root': {
            'level': root_level,
            'handlers': list(handlers),
        },
        # the service pins these levels itself; reclaim them for the CLI
        'loggers': {
            name: {'level': root_level, 'propagate': True} for name in OWN_LOGGERS
        },
    })
    return log_file


__all__ = ["ColorFormatter", "ContextFormatter", "LOG_LEVEL_ENV_VAR", "configure"]
