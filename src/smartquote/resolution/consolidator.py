from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..config.loader import PowerConsolidationConfig
from ..domain.models import RawLineItem


@dataclass(slots=True)
class ConsolidationResult:
    lines: List[RawLineItem]
    consolidated: Optional[RawLineItem] = None
    merged: List[RawLineItem] = field(default_factory=list)

    def all_lines(self) -> List[RawLineItem]:
        if self.consolidated is None:
            return list(self.lines)
        return [*self.lines, self.consolidated]


class PowerConsolidator:
    """Fold every power-module line into one synthetic line with a fixed unit time.

    Cable trays match the power wording on some quotes but are never merged.
    """

    def __init__(self, config: PowerConsolidationConfig) -> None:
        self.config = config
        self._predicate = re.compile(config.predicate, re.IGNORECASE)
        self._exclusion = re.compile(config.exclusion, re.IGNORECASE)

    def is_power_line(self, line: RawLineItem) -> bool:
        if line.consolidated:
            return True
        text = f"{line.product_code} {line.raw_description or line.description}"
        if self._exclusion.search(text):
            return False
        return bool(self._predicate.search(text))

    def consolidate(self, lines: Iterable[RawLineItem]) -> ConsolidationResult:
        passthrough: List[RawLineItem] = []
        merged: List[RawLineItem] = []
        for line in lines:
            if self.is_power_line(line):
                merged.append(line)
            else:
                passthrough.append(line)
        if not merged:
            return ConsolidationResult(lines=passthrough)

        consolidated = RawLineItem(
            line_number=self.config.line_number,
            product_code=self.config.product_code,
            description=self.config.description,
            raw_description=self.config.description,
            quantity=sum(line.quantity for line in merged),
            consolidated=True,
            fixed_time_per_unit=self.config.time_per_unit_hours,
        )
        return ConsolidationResult(lines=passthrough, consolidated=consolidated, merged=merged)


def consolidate(lines: Iterable[RawLineItem], config: PowerConsolidationConfig) -> ConsolidationResult:
    return PowerConsolidator(config).consolidate(lines)


__all__ = ["ConsolidationResult", "PowerConsolidator", "consolidate"]
