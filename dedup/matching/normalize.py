"""
School name normalization.
"""

import re

from dedup.errors import ValidationError

# Applied in order, repeatedly, until the name stops changing
NAME_RULES = [
    (re.compile(r"^the\s+"), ""),
    (re.compile(r"^(?:university|college)\s+of\s+"), ""),
    (re.compile(r"\s+(?:university|college)$"), ""),
    (re.compile(r"\bof\b"), " "),
    (re.compile(r"[.,\-\u2013\u2014]"), " "),
    (re.compile(r"\s+"), " "),
]


def _apply_rules(name: str) -> str:
    for pattern, replacement in NAME_RULES:
        name = pattern.sub(replacement, name)
    return name.strip()


def normalize_name(name: str) -> str:
    """
    Normalize a school name for comparison.

    - Lowercase and trim
    - Drop a leading "the" and a leading "university of" / "college of"
    - Drop a trailing "university" / "college"
    - Drop the word "of"
    - Turn periods, commas, hyphens and dashes into spaces
    - Collapse whitespace

    "University of Missouri" -> "missouri"
    "St. Mary's College"     -> "st mary's"

    Rules are re-applied until nothing changes, so
    normalize_name(normalize_name(x)) == normalize_name(x).
    A name made only of stripped characters normalizes to "".
    """
    if not isinstance(name, str):
        raise ValidationError(f"name must be a string, got {type(name).__name__}")

    normalized = name.lower().strip()
    while True:
        updated = _apply_rules(normalized)
        if updated == normalized:
            return normalized
        normalized = updated


def simple_key(name: str) -> str:
    """Lowercase, trimmed form used for raw equality checks."""
    if not isinstance(name, str):
        raise ValidationError(f"name must be a string, got {type(name).__name__}")
    return name.lower().strip()
