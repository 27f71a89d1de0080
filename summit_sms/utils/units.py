from __future__ import annotations
from typing import Optional

# Canonical tracking units and the ways people type them.
UNIT_SYNONYMS: dict[str, set[str]] = {
    "oz": {"oz", "ounce", "ounces", "fl oz", "floz"},
    "cups": {"cup", "cups"},
    "liters": {"l", "liter", "liters", "litre", "litres"},
    "lbs": {"lb", "lbs", "pound", "pounds"},
    "kg": {"kg", "kgs", "kilo", "kilos", "kilogram", "kilograms"},
    "miles": {"mi", "mile", "miles"},
    "km": {"km", "kms", "kilometer", "kilometers", "kilometre", "kilometres"},
    "steps": {"step", "steps"},
    "minutes": {"m", "min", "mins", "minute", "minutes"},
    "hours": {"h", "hr", "hrs", "hour", "hours"},
    "reps": {"rep", "reps", "repetition", "repetitions"},
    "sets": {"set", "sets"},
    "servings": {"serving", "servings"},
    "calories": {"cal", "cals", "kcal", "calorie", "calories"},
    "pages": {"page", "pages", "pg", "pgs"},
}

# Household measures that need a conversion before they can be logged.
CONTAINER_WORDS: set[str] = {
    "bottle", "bottles", "glass", "glasses", "can", "cans", "mug", "mugs",
    "jug", "jugs", "pint", "pints", "gallon", "gallons", "ml",
    "chapter", "chapters", "lap", "laps", "block", "blocks",
    "sec", "secs", "second", "seconds", "meter", "meters", "metre", "metres",
}

_ALIAS_TO_CANONICAL: dict[str, str] = {
    alias: canonical for canonical, aliases in UNIT_SYNONYMS.items() for alias in aliases
}


def normalize_unit(word: Optional[str]) -> Optional[str]:
    """Map a typed unit to its canonical name; unknown words are returned lowercased."""
    if not word:
        return None
    w = word.strip().lower().rstrip(".")
    return _ALIAS_TO_CANONICAL.get(w, w)


def is_known_unit(word: str) -> bool:
    w = word.strip().lower().rstrip(".")
    return w in _ALIAS_TO_CANONICAL or w in CONTAINER_WORDS


def same_unit(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    na, nb = normalize_unit(a), normalize_unit(b)
    if na == nb:
        return True
    # "bottle" vs "bottles" for units outside the table
    return na.rstrip("s") == nb.rstrip("s")


def lookup_conversion(conversions: Optional[dict], user_unit: Optional[str]) -> Optional[float]:
    """Ratio (target units per user unit) stored for `user_unit`, if any."""
    if not conversions or not user_unit:
        return None
    for key, ratio in conversions.items():
        if same_unit(key, user_unit):
            try:
                ratio = float(ratio)
            except (TypeError, ValueError):
                return None
            return ratio if ratio > 0 else None
    return None
