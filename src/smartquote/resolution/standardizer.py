from __future__ import annotations

import re
from dataclasses import replace
from typing import Iterable, List

from ..domain.models import RawLineItem

LINE_SEPARATOR = "–"

_LINE_PREFIX = re.compile(r"^\s*line\s+\d+\s*[–—-]\s*", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def clean_description(text: str | None) -> str:
    if not text:
        return ""
    collapsed = _WHITESPACE.sub(" ", text).strip()
    return _LINE_PREFIX.sub("", collapsed).strip()


def standardize(line: RawLineItem) -> str:
    """Return ``"Line N – <description>"`` for display and export.

    The pre-cleaned description wins over the raw extracted one; the product
    code is the last resort. Re-standardizing a standardized line is a no-op.
    """

    body = (
        clean_description(line.description)
        or clean_description(line.raw_description)
        or line.product_code.strip()
    )
    return f"Line {line.line_number} {LINE_SEPARATOR} {body}"


def standardize_lines(lines: Iterable[RawLineItem]) -> List[RawLineItem]:
    return [replace(line, description=standardize(line)) for line in lines]


__all__ = ["clean_description", "standardize", "standardize_lines"]
