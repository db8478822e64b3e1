"""Turning extracted lines into resolved and unresolved products."""

from .adjustments import TimeAdjuster
from .consolidator import ConsolidationResult, PowerConsolidator, consolidate
from .pipeline import PreparedLines, prepare_lines
from .resolver import ProductResolver, mark_edited, merge_resolved, resolve
from .screening import ScreenedLine, screen
from .standardizer import clean_description, standardize, standardize_lines

__all__ = [
    "ConsolidationResult",
    "PowerConsolidator",
    "PreparedLines",
    "ProductResolver",
    "ScreenedLine",
    "TimeAdjuster",
    "clean_description",
    "consolidate",
    "mark_edited",
    "merge_resolved",
    "prepare_lines",
    "resolve",
    "screen",
    "standardize",
    "standardize_lines",
]
