"""Code normalization and catalogue matching."""

from .families import FamilyRecognizer, FamilyRegistry, FamilyTokens, build_pattern_recognizer
from .matcher import CatalogueMatcher, MatchResult, MatchTier, match_code
from .normalizer import CodeNormalizer, NormalizationResult, normalize_code

__all__ = [
    "CatalogueMatcher",
    "CodeNormalizer",
    "FamilyRecognizer",
    "FamilyRegistry",
    "FamilyTokens",
    "MatchResult",
    "MatchTier",
    "NormalizationResult",
    "build_pattern_recognizer",
    "match_code",
    "normalize_code",
]
