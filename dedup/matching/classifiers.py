"""
Pair classification: decide whether two records of the same kind are an
exact duplicate, a fuzzy (likely) duplicate, or unrelated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config.settings import settings
from dedup.errors import ValidationError
from dedup.matching.aliases import (
    are_abbreviation_variants,
    are_nicknames,
    is_initial_of,
    within_edit_distance,
)
from dedup.matching.distance import similarity
from dedup.matching.normalize import normalize_name, simple_key
from dedup.records import ContactRecord, OrganizationRecord, is_blank


class MatchType(Enum):
    """Type of duplicate found."""
    EXACT = "exact"    # Same name, raw or after normalization
    FUZZY = "fuzzy"    # Likely the same, needs operator confirmation


@dataclass(frozen=True)
class MatchThresholds:
    """
    Tunable matching thresholds.

    The defaults were picked by eye on real directory data, not derived;
    override them through settings when they misbehave.
    """
    # Normalized-name similarity for a fuzzy school match
    org_similarity: float = 0.90

    # Shorter/longer length ratio when one school name contains the other
    org_containment_ratio: float = 0.60

    # Edit distance allowed between coach first names
    first_name_max_distance: int = 2

    # Edit distance allowed between coach last names (surnames tolerate less)
    last_name_max_distance: int = 1

    @classmethod
    def from_settings(cls) -> "MatchThresholds":
        return cls(
            org_similarity=settings.ORG_SIMILARITY_THRESHOLD,
            org_containment_ratio=settings.ORG_CONTAINMENT_RATIO,
            first_name_max_distance=settings.FIRST_NAME_MAX_DISTANCE,
            last_name_max_distance=settings.LAST_NAME_MAX_DISTANCE,
        )


DEFAULT_THRESHOLDS = MatchThresholds()


def require_name(value, field_name: str, record_id) -> str:
    """Return the name or raise ValidationError when it is missing."""
    if is_blank(value) or not isinstance(value, str):
        raise ValidationError(f"record {record_id} is missing required field '{field_name}'")
    return value


def same_state(a: OrganizationRecord, b: OrganizationRecord) -> bool:
    """Both states known and equal, ignoring case."""
    if is_blank(a.state) or is_blank(b.state):
        return False
    return a.state.strip().lower() == b.state.strip().lower()


def classify_organizations(
    a: OrganizationRecord,
    b: OrganizationRecord,
    thresholds: MatchThresholds = DEFAULT_THRESHOLDS,
) -> Optional[MatchType]:
    """
    Classify a pair of schools.

    Exact:
        raw names equal (case/trim-insensitive), or normalized names equal
    Fuzzy:
        a) normalized similarity >= org_similarity
        b) same state, one normalized name contains the other, and the
           shorter is at least org_containment_ratio of the longer
        c) same state and the names differ only by an abbreviation
    """
    name1 = require_name(a.name, "name", a.id)
    name2 = require_name(b.name, "name", b.id)

    raw1, raw2 = simple_key(name1), simple_key(name2)
    norm1, norm2 = normalize_name(name1), normalize_name(name2)

    if raw1 == raw2 or norm1 == norm2:
        return MatchType.EXACT

    if similarity(norm1, norm2) >= thresholds.org_similarity:
        return MatchType.FUZZY

    if not same_state(a, b):
        return None

    if norm1 in norm2 or norm2 in norm1:
        shorter, longer = sorted((len(norm1), len(norm2)))
        if longer and shorter / longer >= thresholds.org_containment_ratio:
            return MatchType.FUZZY

    if are_abbreviation_variants(raw1, raw2) or are_abbreviation_variants(norm1, norm2):
        return MatchType.FUZZY

    return None


def first_names_compatible(first1: str, first2: str, thresholds: MatchThresholds) -> bool:
    """J vs John, Jon vs John, Bill vs William."""
    return (
        is_initial_of(first1, first2)
        or within_edit_distance(first1, first2, thresholds.first_name_max_distance)
        or are_nicknames(first1, first2)
    )


def classify_contacts(
    a: ContactRecord,
    b: ContactRecord,
    thresholds: MatchThresholds = DEFAULT_THRESHOLDS,
) -> Optional[MatchType]:
    """
    Classify a pair of coaches.

    Coaches at different schools are never compared. Exact when first and
    last names match; fuzzy when last names match (or are within
    last_name_max_distance) and the first names are compatible.
    """
    first1 = simple_key(require_name(a.first_name, "first_name", a.id))
    first2 = simple_key(require_name(b.first_name, "first_name", b.id))
    last1 = simple_key(require_name(a.last_name, "last_name", a.id))
    last2 = simple_key(require_name(b.last_name, "last_name", b.id))

    for record in (a, b):
        if is_blank(record.organization_id):
            raise ValidationError(f"coach {record.id} has no school")

    if str(a.organization_id) != str(b.organization_id):
        return None

    if first1 == first2 and last1 == last2:
        return MatchType.EXACT

    last_name_match = last1 == last2 or within_edit_distance(
        last1, last2, thresholds.last_name_max_distance
    )
    if not last_name_match:
        return None

    if first_names_compatible(first1, first2, thresholds):
        return MatchType.FUZZY

    return None
