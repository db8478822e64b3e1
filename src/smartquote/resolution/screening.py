"""Drop extracted lines that are not installable products."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from ..config.loader import ScreeningConfig
from ..domain.models import RawLineItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScreenedLine:
    line: RawLineItem
    reason: str


def screening_reason(line: RawLineItem, config: ScreeningConfig) -> str | None:
    """Return why ``line`` should be dropped, or ``None`` to keep it."""

    text = line.raw_description or line.description
    if not line.product_code.strip() or not text.strip():
        return "missing_code_or_description"

    lower_desc = text.lower()
    lower_code = line.product_code.lower()

    if any(keyword.lower() in lower_desc for keyword in config.excluded_keywords):
        kept = any(token.lower() in lower_code for token in config.keep_code_tokens) or any(
            token.lower() in lower_desc for token in config.keep_description_tokens
        )
        if not kept:
            return "excluded_keyword"

    keep_token = config.insert_keep_token.lower()
    if any(keyword.lower() in lower_desc for keyword in config.insert_keywords):
        if keep_token not in lower_desc and keep_token not in lower_code:
            return "standalone_insert"

    if config.clamp_keyword.lower() in lower_desc and config.clamp_code_token.lower() in lower_code:
        return "excluded_clamp"

    return None


def screen(lines: Iterable[RawLineItem], config: ScreeningConfig) -> Tuple[List[RawLineItem], List[ScreenedLine]]:
    kept: List[RawLineItem] = []
    dropped: List[ScreenedLine] = []
    for line in lines:
        reason = screening_reason(line, config)
        if reason is None:
            kept.append(line)
        else:
            dropped.append(ScreenedLine(line=line, reason=reason))
    if dropped:
        logger.info(
            "screening.dropped",
            extra={"event": "screening.dropped", "count": len(dropped)},
        )
    return kept, dropped


__all__ = ["ScreenedLine", "screen", "screening_reason"]
