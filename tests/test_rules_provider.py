from __future__ import annotations

import os

import pytest

from smartquote.config.loader import ConfigError, default_rules
from smartquote.config.provider import RulesProvider


def _write(path, body: str, mtime: int) -> None:
    path.write_text(body, encoding="utf-8")
    os.utime(path, (mtime, mtime))


def test_missing_file_yields_defaults(tmp_path):
    provider = RulesProvider(tmp_path / "missing.yaml")
    assert provider.current() == default_rules()


def test_changed_file_is_reloaded(tmp_path):
    cfg_path = tmp_path / "config.yaml"
    _write(cfg_path, "rules:\n  pricing:\n    vat_rate_percent: 20\n", 1_000_000)
    provider = RulesProvider(cfg_path)
    assert provider.current().pricing.vat_rate_percent == 20

    _write(cfg_path, "rules:\n  pricing:\n    vat_rate_percent: 17.5\n", 1_000_100)
    assert provider.current().pricing.vat_rate_percent == 17.5


def test_invalid_reload_keeps_previous_rules(tmp_path):
    cfg_path = tmp_path / "config.yaml"
    _write(cfg_path, "rules:\n  pricing:\n    default_daily_parking_charge: 40\n", 1_000_000)
    provider = RulesProvider(cfg_path)
    before = provider.current()

    _write(cfg_path, "rules:\n  vans: []\n", 1_000_100)
    assert provider.current() is before
    assert provider.reload() is before
    assert before.pricing.default_daily_parking_charge == 40


def test_initial_rules_are_served_until_file_changes(tmp_path):
    cfg_path = tmp_path / "config.yaml"
    _write(cfg_path, "rules:\n  pricing:\n    vat_rate_percent: 5\n", 1_000_000)
    initial = default_rules()
    provider = RulesProvider(cfg_path, initial=initial)
    assert provider.current() is initial

    assert provider.reload().pricing.vat_rate_percent == 5


def test_invalid_first_load_raises(tmp_path):
    cfg_path = tmp_path / "config.yaml"
    _write(cfg_path, "rules:\n  vans: []\n", 1_000_000)
    with pytest.raises(ConfigError):
        RulesProvider(cfg_path).current()
