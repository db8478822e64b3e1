"""Partition raw lines into resolved and unresolved products.

Lookup order for every line is manual edits, then entries learned earlier
in the session, then the catalogue. All three layers share the same
matcher semantics, so a code that resolves in one surface resolves the
same way everywhere.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..config.loader import RulesConfig, default_rules
from ..domain.models import (
    CatalogueEntry,
    CatalogueReference,
    ProductSource,
    RawLineItem,
    ResolutionResult,
    ResolvedProduct,
    UnresolvedPlaceholder,
    UnresolvedProduct,
)
from ..matching.families import FamilyRegistry
from ..matching.matcher import CatalogueMatcher
from ..matching.normalizer import normalize_code
from .adjustments import TimeAdjuster

logger = logging.getLogger(__name__)

_Layer = Tuple[ProductSource, Mapping[str, CatalogueEntry], CatalogueMatcher]


class ProductResolver:
    def __init__(
        self,
        *,
        families: FamilyRegistry | None = None,
        adjuster: TimeAdjuster | None = None,
        default_waste_m3: float = 0.0,
    ) -> None:
        self.families = families or FamilyRegistry()
        self.adjuster = adjuster or TimeAdjuster()
        self.default_waste_m3 = default_waste_m3

    @classmethod
    def from_rules(cls, rules: RulesConfig) -> "ProductResolver":
        return cls(
            families=FamilyRegistry.from_config(rules.families),
            adjuster=TimeAdjuster(rules.time_adjustments),
            default_waste_m3=rules.waste.default_volume_per_unit_m3,
        )

    def _layers(
        self,
        catalogue: Mapping[str, CatalogueEntry],
        session_edits: Mapping[str, CatalogueEntry] | None,
        manual_edits: Mapping[str, CatalogueEntry] | None,
    ) -> List[_Layer]:
        layers: List[_Layer] = []
        # Edits are keyed by whatever code the user typed; only the exact tier applies.
        if manual_edits:
            layers.append((ProductSource.USER_INPUTTED, manual_edits, CatalogueMatcher.from_entries(manual_edits)))
        if session_edits:
            layers.append((ProductSource.LEARNED, session_edits, CatalogueMatcher.from_entries(session_edits)))
        layers.append(
            (
                ProductSource.CATALOGUE,
                catalogue,
                CatalogueMatcher.from_entries(catalogue, families=self.families),
            )
        )
        return layers

    @staticmethod
    def _lookup(code: str, layers: Sequence[_Layer]) -> Tuple[CatalogueReference, Optional[ProductSource]]:
        for source, entries, matcher in layers:
            key = matcher.lookup(code)
            if key is not None:
                return entries[key], source
        return UnresolvedPlaceholder(product_code=code, normalized_code=normalize_code(code)), None

    def _build_resolved(self, line: RawLineItem, entry: CatalogueEntry, source: ProductSource) -> ResolvedProduct:
        if line.fixed_time_per_unit is not None:
            return ResolvedProduct.from_line(line, entry, source, time_per_unit=line.fixed_time_per_unit)
        hours, applied = self.adjuster.adjust(
            line.product_code,
            line.raw_description or line.description,
            entry.install_time_hours,
        )
        if applied:
            logger.debug(
                "resolver.time_adjusted",
                extra={"event": "resolver.time_adjusted", "code": line.product_code, "rules": applied},
            )
        return ResolvedProduct.from_line(line, entry, source, time_per_unit=hours)

    def resolve(
        self,
        lines: Iterable[RawLineItem],
        catalogue: Mapping[str, CatalogueEntry],
        session_edits: Mapping[str, CatalogueEntry] | None = None,
        manual_edits: Mapping[str, CatalogueEntry] | None = None,
    ) -> ResolutionResult:
        layers = self._layers(catalogue, session_edits, manual_edits)
        resolved: List[ResolvedProduct] = []
        pending: Dict[str, UnresolvedProduct] = {}

        for line in lines:
            reference, source = self._lookup(line.product_code, layers)
            if line.fixed_time_per_unit is not None and isinstance(reference, UnresolvedPlaceholder):
                reference = CatalogueEntry(
                    key=line.product_code,
                    install_time_hours=line.fixed_time_per_unit,
                    waste_volume_m3=self.default_waste_m3,
                )
                source = ProductSource.CATALOGUE

            if isinstance(reference, CatalogueEntry):
                assert source is not None
                resolved.append(self._build_resolved(line, reference, source))
            elif isinstance(reference, UnresolvedPlaceholder):
                existing = pending.get(reference.normalized_code)
                if existing is None:
                    pending[reference.normalized_code] = UnresolvedProduct(
                        line_number=line.line_number,
                        product_code=line.product_code,
                        normalized_code=reference.normalized_code,
                        description=line.description,
                        raw_description=line.raw_description,
                        quantity=line.quantity,
                        line_numbers=(line.line_number,),
                    )
                else:
                    existing.quantity += line.quantity
                    existing.line_numbers = existing.line_numbers + (line.line_number,)
            else:  # pragma: no cover - exhaustive over CatalogueReference
                raise TypeError(f"Unexpected catalogue reference {reference!r}")

        resolved.sort(key=lambda product: product.sort_key)
        unresolved = sorted(pending.values(), key=lambda product: product.line_number)
        logger.info(
            "resolver.complete",
            extra={"event": "resolver.complete", "resolved": len(resolved), "unresolved": len(unresolved)},
        )
        return ResolutionResult(resolved=resolved, unresolved=unresolved)

    def resolve_residual(
        self,
        unresolved: Iterable[UnresolvedProduct],
        manual_edits: Mapping[str, CatalogueEntry],
        session_edits: Mapping[str, CatalogueEntry] | None = None,
        catalogue: Mapping[str, CatalogueEntry] | None = None,
    ) -> ResolutionResult:
        """Re-run resolution for the products a user has just supplied data for."""

        lines = [
            RawLineItem(
                line_number=product.line_number,
                product_code=product.product_code,
                description=product.description,
                raw_description=product.raw_description,
                quantity=product.quantity,
            )
            for product in unresolved
        ]
        return self.resolve(lines, catalogue or {}, session_edits, manual_edits)


def merge_resolved(*groups: Iterable[ResolvedProduct]) -> List[ResolvedProduct]:
    """Merge resolved lists; a later group replaces an earlier product on the same line."""

    merged: Dict[Tuple[int, int], ResolvedProduct] = {}
    for group in groups:
        for product in group:
            merged[product.sort_key] = product
    return sorted(merged.values(), key=lambda product: product.sort_key)


def resolve(
    lines: Iterable[RawLineItem],
    catalogue: Mapping[str, CatalogueEntry],
    session_edits: Mapping[str, CatalogueEntry] | None = None,
    manual_edits: Mapping[str, CatalogueEntry] | None = None,
    *,
    rules: RulesConfig | None = None,
) -> ResolutionResult:
    resolver = ProductResolver.from_rules(rules if rules is not None else default_rules())
    return resolver.resolve(lines, catalogue, session_edits, manual_edits)


def mark_edited(product: ResolvedProduct, *, time_per_unit: float, waste_per_unit: float | None = None) -> ResolvedProduct:
    return replace(
        product,
        time_per_unit=time_per_unit,
        waste_per_unit=product.waste_per_unit if waste_per_unit is None else waste_per_unit,
        is_manually_edited=True,
    )


__all__ = ["ProductResolver", "merge_resolved", "mark_edited", "resolve"]
