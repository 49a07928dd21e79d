"""
School lookup by name, used when importing coaches against the directory.

Resolution order:
1. Known informal name ("Mizzou") expanded to the full name
2. Exact match on the lowercase name
3. Exact match after normalization
4. Best rapidfuzz match above the threshold, with a same-state boost
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from rapidfuzz import fuzz, process

from config.logging import get_logger
from config.settings import settings
from dedup.errors import ValidationError
from dedup.kinds import ORGANIZATIONS
from dedup.matching.aliases import expand_school_nickname
from dedup.matching.normalize import simple_key
from dedup.records import OrganizationRecord, is_blank

logger = get_logger("dedup.lookup")


class LookupConfidence(Enum):
    EXACT = "exact"            # Same name
    NORMALIZED = "normalized"  # Same name after normalization
    FUZZY = "fuzzy"            # Similar name
    NONE = "none"


@dataclass
class LookupResult:
    """Result of a school lookup."""
    school: Optional[OrganizationRecord] = None
    confidence: LookupConfidence = LookupConfidence.NONE
    score: float = 0.0
    details: dict = field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return self.school is not None

    def __repr__(self) -> str:
        if self.school:
            return f"<LookupResult({self.school.name}, {self.confidence.value}, score={self.score:.1f})>"
        return "<LookupResult(no match)>"


def combined_score(s1: str, s2: str, **kwargs) -> float:
    """
    Weighted blend of rapidfuzz scorers, 0-100.

    - Token sort ratio: 40% (word order)
    - Token set ratio: 40% (extra words)
    - Ratio: 20% (plain similarity)

    **kwargs absorbs score_cutoff and friends passed by rapidfuzz.process.
    """
    token_sort = fuzz.token_sort_ratio(s1, s2)
    token_set = fuzz.token_set_ratio(s1, s2)
    ratio = fuzz.ratio(s1, s2)
    return (token_sort * 0.4) + (token_set * 0.4) + (ratio * 0.2)


class OrganizationLookup:
    """
    Finds the existing school a free-text name refers to.

    Usage:
        lookup = OrganizationLookup(store.list_all(RecordKind.ORGANIZATION))
        result = lookup.match("Mizzou", state="MO")
    """

    # Same-state candidates get this many points added before thresholding
    STATE_BOOST = 5.0

    def __init__(self, schools: Sequence[OrganizationRecord], threshold: Optional[int] = None):
        self.schools = list(schools)
        self.threshold = threshold if threshold is not None else settings.LOOKUP_MATCH_THRESHOLD
        self._by_raw = {}
        self._by_normalized = {}
        for school in self.schools:
            # First school wins when the directory itself has duplicates
            self._by_raw.setdefault(simple_key(school.name), school)
            self._by_normalized.setdefault(ORGANIZATIONS.comparison_key(school), school)
        self._choices = {i: ORGANIZATIONS.comparison_key(s) for i, s in enumerate(self.schools)}

    def match(self, name: str, state: Optional[str] = None, limit: int = 5) -> LookupResult:
        if is_blank(name) or not isinstance(name, str):
            raise ValidationError("school name to look up is empty")

        search = expand_school_nickname(name)
        raw = simple_key(search)
        normalized = ORGANIZATIONS.comparison_key(OrganizationRecord(id="", name=search))

        if raw in self._by_raw:
            return LookupResult(self._by_raw[raw], LookupConfidence.EXACT, 100.0)
        if normalized in self._by_normalized:
            return LookupResult(
                self._by_normalized[normalized], LookupConfidence.NORMALIZED, 100.0,
                details={"normalized_name": normalized},
            )

        best_school, best_score = None, 0.0
        for _, score, index in process.extract(
            normalized, self._choices, scorer=combined_score, limit=limit
        ):
            school = self.schools[index]
            if state and school.state and school.state.strip().lower() == state.strip().lower():
                score = min(100.0, score + self.STATE_BOOST)
            if score > best_score:
                best_school, best_score = school, score

        if best_school is None or best_score < self.threshold:
            logger.debug(f"No school match for '{name}' (best {best_score:.1f})")
            return LookupResult(score=best_score)

        logger.debug(f"'{name}' -> '{best_school.name}' ({best_score:.1f})")
        return LookupResult(
            best_school, LookupConfidence.FUZZY, best_score,
            details={"input_name": name, "normalized_name": normalized},
        )
