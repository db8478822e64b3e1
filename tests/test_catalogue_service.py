from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from smartquote.catalogue import (
    CatalogueService,
    CatalogueStoreError,
    LearningEvent,
    MemoryCatalogueStore,
    UnknownCatalogueKeyError,
)
from smartquote.config.loader import default_rules, load_config
from smartquote.domain.models import CatalogueEntry


class FlakyStore(MemoryCatalogueStore):
    """Fails the first ``failures`` saves."""

    def __init__(self, entries=None, failures: int = 0) -> None:
        super().__init__(entries)
        self.failures = failures
        self.attempts = 0

    def save(self, entries, *, action, details=None):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise CatalogueStoreError("disk full")
        super().save(entries, action=action, details=details)


def _catalogue():
    return {
        "FLX 4P": CatalogueEntry("FLX 4P", 1.5, 0.5),
        "DSK-1600": CatalogueEntry("DSK-1600", 0.75, 0.3),
    }


def test_snapshot_is_read_only():
    service = CatalogueService(MemoryCatalogueStore(_catalogue()))
    snapshot = service.get()
    with pytest.raises(TypeError):
        snapshot["NEW"] = CatalogueEntry("NEW", 1.0)  # type: ignore[index]


def test_learn_creates_entry_under_normalized_key():
    store = MemoryCatalogueStore(_catalogue())
    service = CatalogueService(store)
    outcome = service.learn(LearningEvent("abc-12 x", 0.4))

    assert outcome.created is True
    assert outcome.persisted is True
    assert outcome.key == "ABC12X"
    assert outcome.entry.waste_volume_m3 == default_rules().waste.default_volume_per_unit_m3
    assert "ABC12X" in store.entries
    assert store.audit[-1] == {"action": "learn", "key": "ABC12X", "code": "abc-12 x"}


def test_learn_updates_exact_match_and_keeps_waste():
    service = CatalogueService(MemoryCatalogueStore(_catalogue()))
    outcome = service.learn(LearningEvent("dsk 1600", 1.25))
    assert outcome.created is False
    assert outcome.key == "DSK-1600"
    assert service.get()["DSK-1600"].install_time_hours == 1.25
    assert service.get()["DSK-1600"].waste_volume_m3 == 0.3


def test_learn_never_updates_a_family_match():
    service = CatalogueService(MemoryCatalogueStore(_catalogue()))
    outcome = service.learn(LearningEvent("FLX-4P-2816-A", 2.0))
    assert outcome.created is True
    assert outcome.key == "FLX4P2816A"
    assert service.get()["FLX 4P"].install_time_hours == 1.5


def test_learn_rejects_empty_code():
    service = CatalogueService(MemoryCatalogueStore())
    with pytest.raises(ValueError):
        service.learn(LearningEvent(" - ", 1.0))


def test_learned_entry_is_visible_to_matcher():
    service = CatalogueService(MemoryCatalogueStore(_catalogue()))
    service.learn(LearningEvent("NEW-1", 0.3))
    assert service.matcher().lookup("new 1") == "NEW1"
    assert service.matcher().lookup("FLX-4P-2816-A") == "FLX 4P"


def test_failed_write_is_session_only_until_flush():
    store = FlakyStore(_catalogue(), failures=1)
    service = CatalogueService(store)
    outcome = service.learn(LearningEvent("NEW-1", 0.3))

    assert outcome.persisted is False
    assert outcome.session_only is True
    assert outcome.error == "disk full"
    assert service.get()["NEW1"].install_time_hours == 0.3
    assert service.session_only_keys == {"NEW1"}
    assert "NEW1" not in store.entries

    assert service.flush() is True
    assert service.session_only_keys == frozenset()
    assert "NEW1" in store.entries
    assert service.flush() is True


def test_retries_until_write_succeeds():
    delays = []
    store = FlakyStore(_catalogue(), failures=2)
    service = CatalogueService(store, write_attempts=3, retry_delay_seconds=0.5, sleep=delays.append)
    outcome = service.learn(LearningEvent("NEW-1", 0.3))
    assert outcome.persisted is True
    assert store.attempts == 3
    assert delays == [0.5, 0.5]


def test_later_successful_write_clears_earlier_session_only_keys():
    store = FlakyStore(_catalogue(), failures=1)
    service = CatalogueService(store)
    service.learn(LearningEvent("NEW-1", 0.3))
    assert service.session_only_keys == {"NEW1"}

    service.learn(LearningEvent("NEW-2", 0.3))
    assert service.session_only_keys == frozenset()
    assert {"NEW1", "NEW2"} <= set(store.entries)


def test_attach_alias():
    store = MemoryCatalogueStore(_catalogue())
    service = CatalogueService(store)
    outcome = service.attach_alias("DESK/1600", "DSK-1600")
    assert outcome.entry.aliases == frozenset({"DESK/1600"})
    assert service.matcher().lookup("desk/1600") == "DSK-1600"
    assert store.audit[-1]["action"] == "attach_alias"

    with pytest.raises(UnknownCatalogueKeyError):
        service.attach_alias("X", "MISSING")


def test_upsert_replaces_entry():
    service = CatalogueService(MemoryCatalogueStore(_catalogue()))
    outcome = service.upsert(CatalogueEntry("DSK-1600", 2.0, 0.1, is_heavy=True))
    assert outcome.created is False
    assert service.get()["DSK-1600"].is_heavy is True


def test_executor_writes_in_background():
    store = MemoryCatalogueStore(_catalogue())
    with ThreadPoolExecutor(max_workers=1) as executor:
        service = CatalogueService(store, executor=executor)
        outcome = service.learn(LearningEvent("NEW-1", 0.3))
        assert outcome.persisted is None
        assert service.get()["NEW1"].install_time_hours == 0.3
        assert outcome.pending is not None
        assert outcome.pending.result(timeout=5) == (True, None)
    assert "NEW1" in store.entries


def test_from_config_uses_yaml_store(tmp_path):
    cfg_path = tmp_path / "config.yaml"
    catalogue_path = tmp_path / "catalogue.yaml"
    cfg_path.write_text(
        f"catalogue:\n  path: '{catalogue_path.as_posix()}'\n  write_attempts: 1\n", encoding="utf-8"
    )
    service = CatalogueService.from_config(load_config(cfg_path))
    assert "FLX 4P" in service.get()

    service.learn(LearningEvent("NEW-1", 0.3))
    assert catalogue_path.exists()
    assert "NEW1" in CatalogueService.from_config(load_config(cfg_path)).get()


def test_learn_persists_with_info_logging_enabled(caplog):
    caplog.set_level(logging.INFO, logger="smartquote")
    store = MemoryCatalogueStore(_catalogue())
    service = CatalogueService(store)

    outcome = service.learn(LearningEvent("MYST-9", 0.5))

    assert outcome.persisted is True
    assert "MYST9" in store.entries
    assert service.session_only_keys == frozenset()
    record = next(r for r in caplog.records if getattr(r, "event", None) == "catalogue.learn")
    assert record.key == "MYST9"
    assert record.is_new is True
