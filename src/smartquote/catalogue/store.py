from __future__ import annotations

import contextlib
import datetime as _dt
import importlib.resources
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol

import yaml

from ..domain.models import CatalogueEntry

logger = logging.getLogger(__name__)

_SEED_RESOURCE = "default_catalogue.yaml"
_RESOURCE_PACKAGE = "smartquote.resources"


class CatalogueStoreError(RuntimeError):
    pass


class UnknownCatalogueKeyError(KeyError):
    """Raised when an alias targets a key the catalogue does not contain."""


class CatalogueStore(Protocol):
    """Durable home of the catalogue; the service keeps the in-memory mirror."""

    def load(self) -> Dict[str, CatalogueEntry]:
        """Return every stored entry keyed by canonical code."""

    def save(
        self,
        entries: Mapping[str, CatalogueEntry],
        *,
        action: str,
        details: Mapping[str, object] | None = None,
    ) -> None:
        """Persist the full catalogue, recording ``action`` in the audit trail."""


def _parse_entries(data: Mapping[str, Any], source: str) -> Dict[str, CatalogueEntry]:
    raw_entries = data.get("entries") or {}
    if not isinstance(raw_entries, Mapping):
        raise CatalogueStoreError(f"{source}: 'entries' must be a mapping")
    entries: Dict[str, CatalogueEntry] = {}
    for key, item in raw_entries.items():
        try:
            entry = CatalogueEntry.from_mapping(str(key), item or {})
        except (TypeError, ValueError, AttributeError):
            logger.warning("Skipping malformed catalogue entry %s in %s", key, source)
            continue
        entries[entry.key] = entry
    return entries


def load_seed_catalogue() -> Dict[str, CatalogueEntry]:
    resource = importlib.resources.files(_RESOURCE_PACKAGE) / _SEED_RESOURCE
    data = yaml.safe_load(resource.read_text(encoding="utf-8")) or {}
    return _parse_entries(data, _SEED_RESOURCE)


class YamlCatalogueStore:
    """Catalogue persisted as one YAML document with an append-only audit list."""

    def __init__(self, path: Path, *, seed_when_missing: bool = True) -> None:
        self.path = Path(path).expanduser()
        if self.path.exists() and self.path.is_dir():
            raise CatalogueStoreError("Catalogue path must be a file, not a directory")
        self.seed_when_missing = seed_when_missing

    def _read_document(self) -> Dict[str, Any]:
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise CatalogueStoreError(f"Unable to read catalogue {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise CatalogueStoreError(f"{self.path} must contain a mapping at the top level")
        return data

    def load(self) -> Dict[str, CatalogueEntry]:
        if not self.path.exists():
            return load_seed_catalogue() if self.seed_when_missing else {}
        return _parse_entries(self._read_document(), str(self.path))

    def audit_log(self) -> List[Mapping[str, object]]:
        if not self.path.exists():
            return []
        return list(self._read_document().get("audit") or [])

    def save(
        self,
        entries: Mapping[str, CatalogueEntry],
        *,
        action: str,
        details: Mapping[str, object] | None = None,
    ) -> None:
        payload = {
            "version": 1,
            "entries": {key: entry.as_dict() for key, entry in entries.items()},
            "audit": self.audit_log() + [
                {
                    "timestamp": _dt.datetime.now(_dt.UTC).isoformat(),
                    "action": action,
                    **(dict(details) if details else {}),
                }
            ],
        }
        serialized = yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            lock_path = self.path.with_suffix(self.path.suffix + ".lock")
            with _lock_file(lock_path):
                self.path.write_text(serialized, encoding="utf-8")
        except OSError as exc:
            raise CatalogueStoreError(f"Unable to write catalogue {self.path}: {exc}") from exc


class MemoryCatalogueStore:
    """In-process store, used for previews and tests."""

    def __init__(self, entries: Mapping[str, CatalogueEntry] | None = None) -> None:
        self.entries: Dict[str, CatalogueEntry] = dict(entries or {})
        self.audit: List[Mapping[str, object]] = []

    def load(self) -> Dict[str, CatalogueEntry]:
        return dict(self.entries)

    def save(
        self,
        entries: Mapping[str, CatalogueEntry],
        *,
        action: str,
        details: Mapping[str, object] | None = None,
    ) -> None:
        self.entries = dict(entries)
        self.audit.append({"action": action, **(dict(details) if details else {})})


@contextlib.contextmanager
def _lock_file(path: Path):
    """Best-effort advisory lock using ``fcntl`` when available."""

    try:
        import fcntl  # type: ignore
    except ImportError:  # pragma: no cover - Windows fallback
        handle = path.open("w+")
        try:
            yield handle
        finally:
            handle.close()
        return

    handle = path.open("w+")
    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        yield handle
    finally:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()


__all__ = [
    "CatalogueStore",
    "CatalogueStoreError",
    "MemoryCatalogueStore",
    "UnknownCatalogueKeyError",
    "YamlCatalogueStore",
    "load_seed_catalogue",
]
