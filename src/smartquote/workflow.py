"""Quote session: lines in, resolved products and calculation out.

The session owns the per-quote state a user builds up while filling in a
quote. That state is the prepared lines, times typed in for unknown codes,
and per-line edits. Everything derived from it is recomputed on request.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .calculation.engine import calculate_all
from .catalogue.service import CatalogueService, LearningEvent, LearnOutcome
from .config.loader import RulesConfig
from .config.provider import RulesProvider
from .domain.models import (
    CalculationResults,
    CatalogueEntry,
    QuoteDetails,
    RawLineItem,
    ResolutionResult,
    ResolvedProduct,
)
from .resolution.pipeline import PreparedLines, prepare_lines
from .resolution.resolver import ProductResolver, mark_edited
from .validation import QuoteValidationError, ValidationReport, validate_all

logger = logging.getLogger(__name__)

RulesSource = Union[RulesConfig, RulesProvider]


class QuoteSession:
    def __init__(
        self,
        catalogue: CatalogueService,
        rules: RulesSource | None = None,
        *,
        details: QuoteDetails | None = None,
    ) -> None:
        self.catalogue = catalogue
        self._rules_source: RulesSource = rules if rules is not None else catalogue.rules
        self.details = details or QuoteDetails()
        self.prepared = PreparedLines(lines=[])
        self.session_edits: Dict[str, CatalogueEntry] = {}
        self.manual_edits: Dict[str, CatalogueEntry] = {}
        self._line_edits: Dict[Tuple[int, int], Tuple[float, Optional[float]]] = {}

    @property
    def rules(self) -> RulesConfig:
        if isinstance(self._rules_source, RulesProvider):
            return self._rules_source.current()
        return self._rules_source

    def load_lines(self, raw: Iterable[Union[RawLineItem, Mapping[str, object]]]) -> ResolutionResult:
        lines = [item if isinstance(item, RawLineItem) else RawLineItem.from_mapping(item) for item in raw]
        self.prepared = prepare_lines(lines, self.rules)
        self._line_edits.clear()
        logger.info(
            "Quote lines loaded",
            extra={
                "event": "session.lines_loaded",
                "lines": len(lines),
                "kept": len(self.prepared.lines),
                "dropped": len(self.prepared.dropped),
            },
        )
        return self.resolution()

    def resolution(self) -> ResolutionResult:
        resolver = ProductResolver.from_rules(self.rules)
        result = resolver.resolve(
            self.prepared.lines,
            self.catalogue.get(),
            self.session_edits,
            self.manual_edits,
        )
        if self._line_edits:
            result.resolved = [self._apply_line_edit(product) for product in result.resolved]
        return result

    def _apply_line_edit(self, product: ResolvedProduct) -> ResolvedProduct:
        edit = self._line_edits.get(product.sort_key)
        if edit is None:
            return product
        time_per_unit, waste_per_unit = edit
        return mark_edited(product, time_per_unit=time_per_unit, waste_per_unit=waste_per_unit)

    @property
    def resolved(self) -> List[ResolvedProduct]:
        return self.resolution().resolved

    def supply_unknown(
        self,
        code: str,
        install_time_hours: float,
        waste_volume_m3: float | None = None,
        is_heavy: bool = False,
        *,
        learn: bool = True,
    ) -> Optional[LearnOutcome]:
        """Record a user-supplied time for an unresolved code, learning it by default."""

        waste = self.rules.waste.default_volume_per_unit_m3 if waste_volume_m3 is None else waste_volume_m3
        self.manual_edits[code] = CatalogueEntry(
            key=code,
            install_time_hours=float(install_time_hours),
            waste_volume_m3=float(waste),
            is_heavy=bool(is_heavy),
        )
        if not learn:
            return None
        outcome = self.catalogue.learn(LearningEvent(code, install_time_hours, waste_volume_m3, is_heavy))
        self.session_edits[outcome.key] = outcome.entry
        return outcome

    def attach_unknown(self, code: str, canonical_key: str) -> LearnOutcome:
        """Point an unresolved code at an existing catalogue entry."""

        outcome = self.catalogue.attach_alias(code, canonical_key)
        self.manual_edits.pop(code, None)
        return outcome

    def edit_product(
        self,
        line_number: int,
        time_per_unit: float,
        waste_per_unit: float | None = None,
        *,
        consolidated: bool = False,
        learn: bool = True,
    ) -> ResolvedProduct:
        sort_key = (1 if consolidated else 0, line_number)
        current = next((p for p in self.resolution().resolved if p.sort_key == sort_key), None)
        if current is None:
            raise KeyError(f"No resolved product on line {line_number}")
        self._line_edits[sort_key] = (float(time_per_unit), waste_per_unit)
        edited = mark_edited(current, time_per_unit=float(time_per_unit), waste_per_unit=waste_per_unit)
        # the consolidated power line carries a fixed time and is never learned;
        # a family-matched line learns under its own code, not the family key
        if learn and not current.consolidated:
            outcome = self.catalogue.learn(
                LearningEvent(
                    current.product_code,
                    edited.time_per_unit,
                    edited.waste_per_unit,
                    edited.is_heavy,
                )
            )
            self.session_edits[outcome.key] = outcome.entry
        return edited

    def set_details(self, details: QuoteDetails | None = None, **changes: object) -> QuoteDetails:
        base = details or self.details
        self.details = replace(base, **changes) if changes else base
        return self.details

    def validate(self) -> ValidationReport:
        products = self.resolved
        total_days: Optional[int] = None
        if products:
            total_days = calculate_all(products, self.details, self.rules).crew.total_days
        return validate_all(self.details, products, self.rules, total_days=total_days)

    def calculate(self, *, strict: bool = False) -> CalculationResults:
        products = self.resolved
        if strict:
            report = self.validate()
            if not report.valid:
                raise QuoteValidationError(report.errors)
        return calculate_all(products, self.details, self.rules)


__all__ = ["QuoteSession"]
