"""
Duplicate matching primitives

- Name normalization (school names)
- Levenshtein distance and similarity
- Abbreviation and nickname recognition
- Pair classification for schools and coaches
"""

from dedup.matching.aliases import (
    are_abbreviation_variants,
    are_nicknames,
    is_initial_of,
)
from dedup.matching.classifiers import (
    DEFAULT_THRESHOLDS,
    MatchThresholds,
    MatchType,
    classify_contacts,
    classify_organizations,
)
from dedup.matching.distance import levenshtein, similarity
from dedup.matching.normalize import normalize_name

__all__ = [
    "DEFAULT_THRESHOLDS",
    "MatchThresholds",
    "MatchType",
    "are_abbreviation_variants",
    "are_nicknames",
    "classify_contacts",
    "classify_organizations",
    "is_initial_of",
    "levenshtein",
    "normalize_name",
    "similarity",
]
