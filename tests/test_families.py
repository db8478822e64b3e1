from smartquote.config.loader import FamilyPatternConfig, default_rules
from smartquote.matching.families import FamilyRecognizer, FamilyRegistry, FamilyTokens, build_pattern_recognizer


def _flx() -> FamilyRecognizer:
    return build_pattern_recognizer(default_rules().families[0])


def test_spaced_code_yields_specific_then_generic_candidates():
    assert _flx().candidates("FLX-4P-2816-A") == [
        "FLX-COWORK-4P-L2816",
        "FLX 4P",
        "4P FLX",
        "FLX-4P",
        "FLX-COWORK-4P",
    ]


def test_compact_code_is_recognised_after_normalization():
    candidates = _flx().candidates("flx4p2400")
    assert candidates[0] == "FLX-COWORK-4P-L2400"
    assert "FLX 4P" in candidates


def test_size_outside_range_is_ignored():
    candidates = _flx().candidates("FLX-6P-0600")
    assert candidates[0] == "FLX 6P"
    assert not any(candidate.startswith("FLX-COWORK-6P-L") for candidate in candidates)


def test_size_insensitive_capacity_skips_specific_variant():
    candidates = _flx().candidates("FLX-1P-2400")
    assert candidates[0] == "FLX 1P"


def test_non_family_code_yields_nothing():
    assert _flx().candidates("POWER-MODULE") == []
    assert _flx().candidates("FLX-COWORK") == []
    assert _flx().candidates("") == []


def test_new_family_is_a_configuration_change():
    config = FamilyPatternConfig(
        name="bench",
        marker="BNC",
        unit="S",
        specific_template="BNC-{capacity}S-{size}",
        generic_templates=("BNC {capacity}S",),
    )
    registry = FamilyRegistry.from_config([config])
    assert list(registry.candidates("bnc 3s 1800")) == [("bench", "BNC-3S-1800"), ("bench", "BNC 3S")]


def test_registry_evaluates_recognizers_in_registration_order():
    first = FamilyRecognizer(
        name="first",
        predicate=lambda code: True,
        extractor=lambda code: FamilyTokens(family="first", capacity="1"),
        candidate_builder=lambda tokens: ["A"],
    )
    second = FamilyRecognizer(
        name="second",
        predicate=lambda code: True,
        extractor=lambda code: FamilyTokens(family="second", capacity="1"),
        candidate_builder=lambda tokens: ["B"],
    )
    registry = FamilyRegistry([first])
    registry.register(second)
    assert len(registry) == 2
    assert list(registry.candidates("anything")) == [("first", "A"), ("second", "B")]
