from __future__ import annotations

import logging

import pytest

from smartquote.catalogue import CatalogueService, MemoryCatalogueStore
from smartquote.config.loader import load_config
from smartquote.domain.models import CatalogueEntry


# loggers whose level or propagation the app and CLI set up explicitly
_CONFIGURED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "smartquote", "smartquote_service")


def _reset_logging() -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)
    for name in _CONFIGURED_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True


@pytest.fixture(autouse=True)
def isolated_logging():
    yield
    _reset_logging()


@pytest.fixture()
def log_dir(tmp_path, monkeypatch):
    target = tmp_path / "logs"
    monkeypatch.setenv("SMARTQUOTE_LOG_DIR", str(target))
    monkeypatch.delenv("SMARTQUOTE_LOG_FILE", raising=False)
    monkeypatch.delenv("SMARTQUOTE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SMARTQUOTE_DEBUG", raising=False)
    yield target


@pytest.fixture()
def make_app(tmp_path, log_dir):
    """Build the service app over an in-memory catalogue."""

    from smartquote_service.app import create_app

    def factory(entries=None, store=None):
        if store is None:
            store = MemoryCatalogueStore(
                entries
                if entries is not None
                else {
                    "FLX 4P": CatalogueEntry("FLX 4P", 1.5, 0.5),
                    "DSK-1600": CatalogueEntry("DSK-1600", 0.75, 0.3),
                }
            )
        config = load_config(tmp_path / "missing-config.yaml")
        return create_app(config, catalogue_service=CatalogueService(store, config.rules))

    return factory
