from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..config.loader import RulesConfig
from ..domain.models import RawLineItem
from .consolidator import PowerConsolidator
from .screening import ScreenedLine, screen
from .standardizer import standardize_lines


@dataclass(slots=True)
class PreparedLines:
    lines: List[RawLineItem]
    dropped: List[ScreenedLine] = field(default_factory=list)
    merged_power_lines: List[RawLineItem] = field(default_factory=list)
    consolidated: Optional[RawLineItem] = None


def prepare_lines(lines: Iterable[RawLineItem], rules: RulesConfig) -> PreparedLines:
    """Screen, consolidate power items and standardize descriptions, in that order."""

    kept, dropped = screen(lines, rules.screening)
    consolidation = PowerConsolidator(rules.power).consolidate(kept)
    standardized = standardize_lines(consolidation.all_lines())
    consolidated = next((line for line in standardized if line.consolidated), None)
    return PreparedLines(
        lines=standardized,
        dropped=dropped,
        merged_power_lines=list(consolidation.merged),
        consolidated=consolidated,
    )


__all__ = ["PreparedLines", "prepare_lines"]
