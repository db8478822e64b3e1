"""Family-pattern recognizers for codes that carry capacity and size tokens.

A recognizer turns a raw code such as ``FLX-4P-2816-A`` into an ordered list
of catalogue keys worth trying (``FLX-COWORK-4P-L2816``, ``FLX 4P``, ...).
The matcher accepts the first candidate that is a real catalogue key, so
candidate order is the only tie-break.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional

from ..config.loader import FamilyPatternConfig
from .normalizer import normalize_code

_SIZE_TOKEN = re.compile(r"(?<![0-9])(\d{4})(?![0-9])")


@dataclass(frozen=True, slots=True)
class FamilyTokens:
    family: str
    capacity: str
    size: Optional[str] = None


@dataclass(frozen=True, slots=True)
class FamilyRecognizer:
    name: str
    predicate: Callable[[str], bool]
    extractor: Callable[[str], Optional[FamilyTokens]]
    candidate_builder: Callable[[FamilyTokens], List[str]]

    def candidates(self, raw_code: str) -> List[str]:
        if not raw_code or not self.predicate(raw_code):
            return []
        tokens = self.extractor(raw_code)
        if tokens is None:
            return []
        return self.candidate_builder(tokens)


def _first_size(text: str, size_range: tuple[int, int]) -> Optional[str]:
    low, high = size_range
    for match in _SIZE_TOKEN.finditer(text):
        value = int(match.group(1))
        if low <= value <= high:
            return match.group(1)
    return None


def build_pattern_recognizer(config: FamilyPatternConfig) -> FamilyRecognizer:
    """Build a recognizer for ``<marker><capacity><unit>[size][variant]`` codes."""

    marker = config.marker.upper()
    unit = config.unit.upper()
    normalized_marker = normalize_code(marker)
    spaced = re.compile(rf"{re.escape(marker)}[-_\s]*(\d+){re.escape(unit)}")
    compact = re.compile(rf"{re.escape(normalized_marker)}(\d+){re.escape(normalize_code(unit))}")
    insensitive = frozenset(config.size_insensitive_capacities)

    def predicate(raw_code: str) -> bool:
        return normalized_marker in normalize_code(raw_code)

    def extractor(raw_code: str) -> Optional[FamilyTokens]:
        upper = raw_code.upper()
        found = spaced.search(upper)
        text = upper
        if found is None:
            text = normalize_code(raw_code)
            found = compact.search(text)
        if found is None:
            return None
        remainder = text[found.end():]
        return FamilyTokens(
            family=config.name,
            capacity=found.group(1),
            size=_first_size(remainder, config.size_range),
        )

    def candidate_builder(tokens: FamilyTokens) -> List[str]:
        ordered: List[str] = []
        if tokens.size and tokens.capacity not in insensitive:
            ordered.append(config.specific_template.format(capacity=tokens.capacity, size=tokens.size))
        for template in config.generic_templates:
            candidate = template.format(capacity=tokens.capacity, size=tokens.size or "")
            if candidate not in ordered:
                ordered.append(candidate)
        return ordered

    return FamilyRecognizer(
        name=config.name,
        predicate=predicate,
        extractor=extractor,
        candidate_builder=candidate_builder,
    )


class FamilyRegistry:
    """Recognizers evaluated in registration order."""

    def __init__(self, recognizers: Iterable[FamilyRecognizer] = ()) -> None:
        self._recognizers: List[FamilyRecognizer] = list(recognizers)

    @classmethod
    def from_config(cls, families: Iterable[FamilyPatternConfig]) -> "FamilyRegistry":
        return cls(build_pattern_recognizer(family) for family in families)

    def register(self, recognizer: FamilyRecognizer) -> None:
        self._recognizers.append(recognizer)

    def __iter__(self) -> Iterator[FamilyRecognizer]:
        return iter(self._recognizers)

    def __len__(self) -> int:
        return len(self._recognizers)

    def candidates(self, raw_code: str) -> Iterator[tuple[str, str]]:
        """Yield ``(recognizer name, candidate key)`` in priority order."""

        for recognizer in self._recognizers:
            for candidate in recognizer.candidates(raw_code):
                yield recognizer.name, candidate


__all__ = [
    "FamilyRecognizer",
    "FamilyRegistry",
    "FamilyTokens",
    "build_pattern_recognizer",
]
