"""Edge-case install-time rules applied after a catalogue hit.

A ``when`` group fires when every token in it matches. A bare token is a
substring test against one of the rule's ``fields``; ``code:GLOW`` pins the
substring test to a field, and ``code=GLOW-20`` requires the whole field to
equal the value.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, NamedTuple, Optional, Tuple

from ..config.loader import ADJUSTMENT_FIELDS, TimeAdjustmentRule

_LENGTH_MM = re.compile(r"L(\d{3,4})")
_QUALIFIED = re.compile(r"^(?P<field>[A-Z]+)(?P<op>[:=])(?P<value>.+)$")


class _Token(NamedTuple):
    field: Optional[str]
    exact: bool
    value: str


def parse_token(raw: str) -> _Token:
    text = raw.upper()
    found = _QUALIFIED.match(text)
    if found and found.group("field").lower() in ADJUSTMENT_FIELDS:
        return _Token(found.group("field").lower(), found.group("op") == "=", found.group("value"))
    return _Token(None, False, text)


def _token_matches(token: _Token, texts: Mapping[str, str], default_field: str) -> bool:
    text = texts[token.field or default_field]
    if not text:
        return False
    return text == token.value if token.exact else token.value in text


def _rule_matches(rule: TimeAdjustmentRule, texts: Mapping[str, str]) -> bool:
    for name in rule.fields:
        if texts[name] and any(texts[name].startswith(prefix) for prefix in rule.prefixes):
            return True
    for group in rule.when:
        tokens = [parse_token(raw) for raw in group]
        if tokens and any(all(_token_matches(t, texts, name) for t in tokens) for name in rule.fields):
            return True
    return False


class TimeAdjuster:
    def __init__(self, rules: Iterable[TimeAdjustmentRule] = ()) -> None:
        self.rules: Tuple[TimeAdjustmentRule, ...] = tuple(rules)

    def adjust(self, code: str, description: str, base_hours: float) -> Tuple[float, List[str]]:
        """Return the adjusted unit time and the names of the rules that fired."""

        texts = {"code": (code or "").strip().upper(), "description": (description or "").upper()}
        hours = base_hours
        applied: List[str] = []
        for rule in self.rules:
            if not _rule_matches(rule, texts):
                continue
            if rule.hours is not None:
                hours = rule.hours
                applied.append(rule.name)
                continue
            if rule.length_threshold_mm is not None:
                found = _LENGTH_MM.search(texts["description"])
                if found is None:
                    continue
                extra_mm = max(0, int(found.group(1)) - rule.length_threshold_mm)
                hours = hours + (rule.add_hours or 0.0) + extra_mm / 1000 * rule.hours_per_extra_metre
            else:
                hours = hours + (rule.add_hours or 0.0)
            applied.append(rule.name)
        return hours, applied


__all__ = ["TimeAdjuster", "parse_token"]
