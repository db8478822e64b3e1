from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, Mapping, MutableMapping, Optional

from ..domain.models import CatalogueEntry
from .families import FamilyRegistry
from .normalizer import normalize_code

logger = logging.getLogger(__name__)


class MatchTier(IntEnum):
    """Lower tiers win; a code never reaches a tier after a hit."""

    EXACT = 1
    FAMILY = 2


@dataclass(frozen=True, slots=True)
class MatchResult:
    raw_code: str
    normalized: str
    key: str
    tier: MatchTier
    via: str

    def to_dict(self) -> MutableMapping[str, object]:
        return {
            "raw_code": self.raw_code,
            "normalized": self.normalized,
            "key": self.key,
            "tier": self.tier.name.lower(),
            "via": self.via,
        }


class CatalogueMatcher:
    """Resolve raw codes against a fixed set of catalogue keys.

    Every tier ends with an exact string hit on a real key: the exact tier
    compares normalized forms through a precomputed map, the family tier
    checks generated candidates verbatim. There is no similarity scoring.
    """

    def __init__(
        self,
        keys: Iterable[str],
        *,
        aliases: Mapping[str, str] | None = None,
        families: FamilyRegistry | None = None,
    ) -> None:
        self._by_normalized: Dict[str, str] = {}
        self._via: Dict[str, str] = {}
        ordered = list(keys)
        self._keys: frozenset[str] = frozenset(ordered)
        for key in ordered:
            normalized = normalize_code(key)
            if normalized and normalized not in self._by_normalized:
                self._by_normalized[normalized] = key
                self._via[normalized] = "key"
        for alias, key in (aliases or {}).items():
            if key not in self._keys:
                continue
            normalized = normalize_code(alias)
            if normalized and normalized not in self._by_normalized:
                self._by_normalized[normalized] = key
                self._via[normalized] = "alias"
        self._families = families or FamilyRegistry()

    @classmethod
    def from_entries(
        cls,
        entries: Mapping[str, CatalogueEntry],
        *,
        families: FamilyRegistry | None = None,
    ) -> "CatalogueMatcher":
        aliases = {alias: key for key, entry in entries.items() for alias in sorted(entry.aliases)}
        return cls(entries.keys(), aliases=aliases, families=families)

    @property
    def keys(self) -> frozenset[str]:
        return self._keys

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def match(self, raw_code: str) -> Optional[MatchResult]:
        normalized = normalize_code(raw_code)
        if not normalized:
            return None

        key = self._by_normalized.get(normalized)
        if key is not None:
            return MatchResult(
                raw_code=raw_code,
                normalized=normalized,
                key=key,
                tier=MatchTier.EXACT,
                via=self._via[normalized],
            )

        for family, candidate in self._families.candidates(raw_code):
            if candidate in self._keys:
                logger.debug(
                    "matcher.family_hit",
                    extra={"event": "matcher.family_hit", "code": raw_code, "key": candidate, "family": family},
                )
                return MatchResult(
                    raw_code=raw_code,
                    normalized=normalized,
                    key=candidate,
                    tier=MatchTier.FAMILY,
                    via=family,
                )
        return None

    def lookup(self, raw_code: str) -> Optional[str]:
        result = self.match(raw_code)
        return result.key if result is not None else None


def match_code(
    raw_code: str,
    catalogue_keys: Iterable[str],
    *,
    families: FamilyRegistry | None = None,
) -> Optional[str]:
    """One-shot match; build a :class:`CatalogueMatcher` when matching a batch."""

    return CatalogueMatcher(catalogue_keys, families=families).lookup(raw_code)


__all__ = ["CatalogueMatcher", "MatchResult", "MatchTier", "match_code"]
