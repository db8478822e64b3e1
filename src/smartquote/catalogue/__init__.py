"""Catalogue persistence and the session-facing catalogue service."""

from .service import CatalogueService, CatalogueSnapshot, LearningEvent, LearnOutcome
from .store import (
    CatalogueStore,
    CatalogueStoreError,
    MemoryCatalogueStore,
    UnknownCatalogueKeyError,
    YamlCatalogueStore,
    load_seed_catalogue,
)

__all__ = [
    "CatalogueService",
    "CatalogueSnapshot",
    "CatalogueStore",
    "CatalogueStoreError",
    "LearnOutcome",
    "LearningEvent",
    "MemoryCatalogueStore",
    "UnknownCatalogueKeyError",
    "YamlCatalogueStore",
    "load_seed_catalogue",
]
