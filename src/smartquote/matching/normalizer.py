"""Single source of truth for catalogue identity.

Every lookup key in the pipeline, and every surface that must agree with
the matcher on whether two codes are "the same product", goes through
:func:`normalize_code`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

NORMALIZATION_RULES_VERSION = "v1"

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[()\-_]+")


@dataclass(slots=True)
class NormalizationResult:
    """Result of normalizing a product code, with the rules that fired."""

    original: str
    normalized: str
    rule_ids: List[str]
    descriptions: List[str]


def normalize_code(code: str | None) -> str:
    """Upper-case ``code`` and drop whitespace, parentheses, hyphens and underscores."""

    if not code:
        return ""
    return _PUNCTUATION.sub("", _WHITESPACE.sub("", code.upper()))


class CodeNormalizer:
    """Explain how :func:`normalize_code` transforms a value."""

    rules_version = NORMALIZATION_RULES_VERSION

    def normalize(self, value: str | None) -> NormalizationResult:
        original = value or ""
        working = original
        rule_ids: List[str] = []
        descriptions: List[str] = []

        cased = working.upper()
        if cased != working:
            rule_ids.append("rule.case_fold")
            descriptions.append("uppercased input")
            working = cased

        collapsed = _WHITESPACE.sub("", working)
        if collapsed != working:
            rule_ids.append("rule.strip_whitespace")
            descriptions.append("removed whitespace")
            working = collapsed

        stripped = _PUNCTUATION.sub("", working)
        if stripped != working:
            rule_ids.append("rule.strip_punct")
            descriptions.append("removed parentheses, hyphens and underscores")
            working = stripped

        return NormalizationResult(
            original=original,
            normalized=working,
            rule_ids=rule_ids,
            descriptions=descriptions,
        )


__all__ = [
    "NORMALIZATION_RULES_VERSION",
    "CodeNormalizer",
    "NormalizationResult",
    "normalize_code",
]
