"""
Local interpretation of short SMS replies when the question is already known.

Everything here is pure: no I/O, no model calls. A `None` result means
"no match" and the caller is expected to try the smart parser next.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Optional

from ..models.habit import TRACKING_BOOLEAN, TRACKING_METRIC
from .units import is_known_unit, lookup_conversion, same_unit

YES_WORDS = {
    "y", "yes", "yeah", "yea", "yep", "yup", "ya", "sure", "done", "did it",
    "i did", "true", "completed", "complete", "ok", "okay",
}
NO_WORDS = {
    "n", "no", "nope", "nah", "not today", "didn't", "didnt", "did not",
    "false", "skip", "skipped", "missed",
}
YES_EMOJI = {"✅", "👍", "✔", "💪", "🎉", "🙌", "👌"}
NO_EMOJI = {"❌", "👎", "✖", "🚫", "🙅"}

_NUMBER_PREFIX = re.compile(r"^(\d[\d,]*(?:\.\d+)?|\.\d+)")
_PURE_NUMBER = re.compile(r"^(\d[\d,]*(?:\.\d+)?|\.\d+)$")
_WORD = re.compile(r"[a-z][a-z']*")


@dataclass(frozen=True)
class ParsedReply:
    tracking_type: str
    completed: Optional[bool] = None
    metric_value: Optional[float] = None


def _normalize(text: str) -> str:
    text = text.replace("\ufe0f", "").strip().lower()
    return text.strip(" \t\n!.?,")


def parse_yes_no(text: str) -> Optional[bool]:
    t = _normalize(text)
    if not t:
        return None
    if t in YES_WORDS or t in YES_EMOJI:
        return True
    if t in NO_WORDS or t in NO_EMOJI:
        return False
    # a reply made only of emoji, e.g. "✅✅"
    chars = {c for c in t if not c.isspace()}
    if chars and chars <= YES_EMOJI:
        return True
    if chars and chars <= NO_EMOJI:
        return False
    return None


def parse_number(text: str) -> Optional[float]:
    """Leading non-negative number of `text` ("16", "16.5 oz", "1,200 steps")."""
    t = _normalize(text)
    match = _NUMBER_PREFIX.match(t)
    if not match:
        return None
    try:
        return float(match.group(1).replace(",", ""))
    except ValueError:
        return None


def _trailing_unit(text: str) -> Optional[str]:
    t = _normalize(text)
    match = _NUMBER_PREFIX.match(t)
    if not match:
        return None
    word = _WORD.search(t[match.end():])
    return word.group(0) if word else None


def parse_metric(
    text: str,
    unit: Optional[str] = None,
    unit_conversions: Optional[dict] = None,
) -> Optional[float]:
    """
    Numeric prefix of `text` in the habit's own unit. Trailing words are
    ignored unless they name a different unit: a stored conversion is applied,
    otherwise the reply is left for the smart parser.
    """
    value = parse_number(text)
    if value is None:
        return None

    trailing = _trailing_unit(text)
    if not trailing or same_unit(trailing, unit):
        return value

    ratio = lookup_conversion(unit_conversions, trailing)
    if ratio is not None:
        return value * ratio
    if is_known_unit(trailing):
        return None
    return value


def parse_reply(
    text: str,
    tracking_type: str,
    unit: Optional[str] = None,
    unit_conversions: Optional[dict] = None,
) -> Optional[ParsedReply]:
    if tracking_type == TRACKING_BOOLEAN:
        answer = parse_yes_no(text)
        if answer is None:
            t = _normalize(text)
            if _PURE_NUMBER.match(t) and float(t.replace(",", "")) in (0.0, 1.0):
                answer = float(t.replace(",", "")) == 1.0
        if answer is None:
            return None
        return ParsedReply(tracking_type=TRACKING_BOOLEAN, completed=answer)

    if tracking_type == TRACKING_METRIC:
        value = parse_metric(text, unit, unit_conversions)
        if value is None:
            return None
        return ParsedReply(tracking_type=TRACKING_METRIC, metric_value=value)

    return None
