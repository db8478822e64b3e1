"""In-memory catalogue mirror with serialized writes to a durable store.

Readers get an immutable snapshot; writers go through :class:`CatalogueService`,
which applies the change to the mirror first and then persists. A write
that still fails after the configured retries leaves the change in the
mirror and reports it as session-only.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

from ..config.loader import AppConfig, RulesConfig, default_rules
from ..domain.models import CatalogueEntry
from ..matching.families import FamilyRegistry
from ..matching.matcher import CatalogueMatcher, MatchTier
from ..matching.normalizer import normalize_code
from .store import CatalogueStore, CatalogueStoreError, UnknownCatalogueKeyError, YamlCatalogueStore

logger = logging.getLogger(__name__)

CatalogueSnapshot = Mapping[str, CatalogueEntry]


@dataclass(frozen=True, slots=True)
class LearningEvent:
    product_code: str
    install_time_hours: float
    waste_volume_m3: float | None = None
    is_heavy: bool = False


@dataclass(slots=True)
class LearnOutcome:
    key: str
    entry: CatalogueEntry
    created: bool
    persisted: bool | None
    error: str | None = None
    pending: Future | None = None

    @property
    def session_only(self) -> bool:
        return self.persisted is False

    def as_dict(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "entry": {"key": self.key, **self.entry.as_dict()},
            "created": self.created,
            "persisted": self.persisted,
            "session_only": self.session_only,
            "error": self.error,
        }


class CatalogueService:
    def __init__(
        self,
        store: CatalogueStore,
        rules: RulesConfig | None = None,
        *,
        write_attempts: int = 1,
        retry_delay_seconds: float = 0.0,
        executor: Executor | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.rules = rules or default_rules()
        self.write_attempts = max(1, int(write_attempts))
        self.retry_delay_seconds = max(0.0, float(retry_delay_seconds))
        self._executor = executor
        self._sleep = sleep
        self._lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._entries: Dict[str, CatalogueEntry] = dict(store.load())
        self._unsaved: set[str] = set()
        logger.info(
            "Catalogue loaded",
            extra={"event": "catalogue.loaded", "entries": len(self._entries)},
        )

    @classmethod
    def from_config(cls, config: AppConfig, *, executor: Executor | None = None) -> "CatalogueService":
        return cls(
            YamlCatalogueStore(config.catalogue.path),
            config.rules,
            write_attempts=config.catalogue.write_attempts,
            retry_delay_seconds=config.catalogue.retry_delay_seconds,
            executor=executor,
        )

    # ------------------------------------------------------------------ reads
    def get(self) -> CatalogueSnapshot:
        with self._lock:
            return MappingProxyType(dict(self._entries))

    def matcher(self) -> CatalogueMatcher:
        return CatalogueMatcher.from_entries(self.get(), families=FamilyRegistry.from_config(self.rules.families))

    @property
    def session_only_keys(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._unsaved)

    def _existing_key(self, code: str) -> Optional[str]:
        # Learning only ever updates a direct hit; a family hit is a different product.
        result = CatalogueMatcher.from_entries(self._entries).match(code)
        if result is None or result.tier is not MatchTier.EXACT:
            return None
        return result.key

    # ----------------------------------------------------------------- writes
    def upsert(self, entry: CatalogueEntry) -> LearnOutcome:
        with self._lock:
            created = entry.key not in self._entries
            self._entries[entry.key] = entry
        return self._commit(entry.key, entry, created, action="upsert")

    def attach_alias(self, code: str, canonical_key: str) -> LearnOutcome:
        with self._lock:
            target = self._entries.get(canonical_key)
            if target is None:
                raise UnknownCatalogueKeyError(canonical_key)
            updated = target.with_alias(code)
            self._entries[canonical_key] = updated
        return self._commit(canonical_key, updated, False, action="attach_alias", details={"alias": code})

    def learn(self, event: LearningEvent) -> LearnOutcome:
        with self._lock:
            key = self._existing_key(event.product_code)
            if key is None:
                key = normalize_code(event.product_code)
                if not key:
                    raise ValueError("Cannot learn a product without a code")
                waste = event.waste_volume_m3
                if waste is None:
                    waste = self.rules.waste.default_volume_per_unit_m3
                entry = CatalogueEntry(
                    key=key,
                    install_time_hours=float(event.install_time_hours),
                    waste_volume_m3=float(waste),
                    is_heavy=bool(event.is_heavy),
                )
                created = True
            else:
                current = self._entries[key]
                entry = replace(
                    current,
                    install_time_hours=float(event.install_time_hours),
                    waste_volume_m3=(
                        current.waste_volume_m3 if event.waste_volume_m3 is None else float(event.waste_volume_m3)
                    ),
                    is_heavy=bool(event.is_heavy),
                )
                created = False
            self._entries[key] = entry
        logger.info(
            "Learned product time",
            extra={"event": "catalogue.learn", "code": event.product_code, "key": key, "is_new": created},
        )
        return self._commit(key, entry, created, action="learn", details={"code": event.product_code})

    def flush(self) -> bool:
        """Retry persisting changes that previously fell back to session-only."""

        with self._lock:
            if not self._unsaved:
                return True
            keys = sorted(self._unsaved)
        persisted, _ = self._persist("flush", {"keys": keys}, keys)
        return persisted

    # ---------------------------------------------------------------- helpers
    def _commit(
        self,
        key: str,
        entry: CatalogueEntry,
        created: bool,
        *,
        action: str,
        details: Mapping[str, object] | None = None,
    ) -> LearnOutcome:
        payload = {"key": key, **(dict(details) if details else {})}
        with self._lock:
            self._unsaved.add(key)
        if self._executor is not None:
            future = self._executor.submit(self._persist, action, payload, [key])
            return LearnOutcome(key=key, entry=entry, created=created, persisted=None, pending=future)
        persisted, error = self._persist(action, payload, [key])
        return LearnOutcome(key=key, entry=entry, created=created, persisted=persisted, error=error)

    def _persist(self, action: str, details: Mapping[str, object], keys) -> tuple[bool, str | None]:
        error: str | None = None
        with self._write_lock:
            for attempt in range(1, self.write_attempts + 1):
                snapshot = self.get()
                try:
                    self.store.save(snapshot, action=action, details=details)
                except CatalogueStoreError as exc:
                    error = str(exc)
                    logger.warning(
                        "Catalogue write failed",
                        extra={"event": "catalogue.write_failed", "action": action, "attempt": attempt},
                    )
                    if attempt < self.write_attempts and self.retry_delay_seconds:
                        self._sleep(self.retry_delay_seconds)
                    continue
                with self._lock:
                    # the snapshot carries earlier session-only changes too
                    self._unsaved = {
                        key for key in self._unsaved if self._entries.get(key) != snapshot.get(key)
                    }
                return True, None
        logger.error(
            "Catalogue change kept for this session only",
            extra={"event": "catalogue.persist_failed", "action": action, "keys": list(keys)},
        )
        return False, error


__all__ = ["CatalogueService", "CatalogueSnapshot", "LearnOutcome", "LearningEvent"]
