"""
Record-kind strategies.

The candidate generator and merge resolver are generic; everything that
differs between schools and coaches lives in a KindStrategy:

- how to label a record for operators
- how to group records before pairing (coaches only pair within a school)
- classify(a, b) and score(a, b)
- which optional fields are filled in from the discarded record on merge
- which dependent kind is re-parented on merge
"""

import math
from abc import ABC, abstractmethod
from typing import Optional

from dedup.errors import ValidationError
from dedup.matching.classifiers import (
    DEFAULT_THRESHOLDS,
    MatchThresholds,
    MatchType,
    classify_contacts,
    classify_organizations,
    same_state,
)
from dedup.matching.distance import levenshtein, similarity
from dedup.matching.normalize import normalize_name, simple_key
from dedup.records import (
    ContactRecord,
    OrganizationRecord,
    Record,
    RecordKind,
    is_blank,
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def plural(count: int, singular: str, plural_form: str) -> str:
    return f"{count} {singular if count == 1 else plural_form}"


class KindStrategy(ABC):
    """Capabilities the generic engine needs from a record kind."""

    kind: RecordKind
    # Optional scalar fields copied from discard to keep when keep's is empty
    mergeable_fields: tuple[str, ...] = ()
    # Kind whose foreign key points at this kind, re-parented on merge
    dependent_kind: Optional[RecordKind] = None
    dependent_noun: tuple[str, str] = ("record", "records")

    @abstractmethod
    def label(self, record: Record) -> str:
        """Human-readable name for operator messages."""

    @abstractmethod
    def comparison_key(self, record: Record):
        """Canonical form of the record's name(s)."""

    @abstractmethod
    def classify(
        self, a: Record, b: Record, thresholds: MatchThresholds = DEFAULT_THRESHOLDS
    ) -> Optional[MatchType]:
        ...

    @abstractmethod
    def score(self, a: Record, b: Record) -> int:
        """Advisory confidence for ranking; never used to classify."""

    def group_key(self, record: Record, block_by_state: bool = False):
        """Records are only paired within the same group. None = one group."""
        return None

    def describe_dependents(self, count: int) -> str:
        singular, plural_form = self.dependent_noun
        return plural(count, singular, plural_form)


class OrganizationStrategy(KindStrategy):
    """Schools."""

    kind = RecordKind.ORGANIZATION
    mergeable_fields = ("city", "state", "type", "conference", "division")
    dependent_kind = RecordKind.CONTACT
    dependent_noun = ("coach", "coaches")

    def label(self, record: OrganizationRecord) -> str:
        return record.name

    def comparison_key(self, record: OrganizationRecord) -> str:
        return normalize_name(record.name)

    def classify(self, a, b, thresholds=DEFAULT_THRESHOLDS):
        return classify_organizations(a, b, thresholds)

    def score(self, a: OrganizationRecord, b: OrganizationRecord) -> int:
        """
        100 for identical names (90 if identical only after normalization),
        +20 same state, +15 same conference, +10 same division,
        plus up to 50 for normalized-name similarity.
        """
        score = 0
        norm1, norm2 = normalize_name(a.name), normalize_name(b.name)

        if simple_key(a.name) == simple_key(b.name):
            score += 100
        elif norm1 == norm2:
            score += 90

        if same_state(a, b):
            score += 20
        if a.conference and b.conference and a.conference == b.conference:
            score += 15
        if a.division and b.division and a.division == b.division:
            score += 10

        score += round_half_up(similarity(norm1, norm2) * 50)
        return score

    def group_key(self, record: OrganizationRecord, block_by_state: bool = False):
        if not block_by_state:
            return None
        # Schools without a state get their own block
        return "" if is_blank(record.state) else record.state.strip().lower()


class ContactStrategy(KindStrategy):
    """Coaches. Only compared against coaches at the same school."""

    kind = RecordKind.CONTACT
    mergeable_fields = ("title", "email", "phone")
    dependent_kind = RecordKind.ATTENDANCE
    dependent_noun = ("attendance record", "attendance records")

    def label(self, record: ContactRecord) -> str:
        return record.full_name

    def comparison_key(self, record: ContactRecord) -> tuple[str, str]:
        return simple_key(record.first_name), simple_key(record.last_name)

    def classify(self, a, b, thresholds=DEFAULT_THRESHOLDS):
        return classify_contacts(a, b, thresholds)

    def score(self, a: ContactRecord, b: ContactRecord) -> int:
        """
        +50 each for identical first/last name, +30 each for a one-letter
        difference, +10 for the same first initial.
        """
        first1, last1 = self.comparison_key(a)
        first2, last2 = self.comparison_key(b)
        score = 0

        if first1 == first2:
            score += 50
        if last1 == last2:
            score += 50

        if levenshtein(first1, first2) == 1:
            score += 30
        if levenshtein(last1, last2) == 1:
            score += 30

        if first1[:1] and first1[:1] == first2[:1]:
            score += 10

        return score

    def group_key(self, record: ContactRecord, block_by_state: bool = False):
        return str(record.organization_id)


ORGANIZATIONS = OrganizationStrategy()
CONTACTS = ContactStrategy()

STRATEGIES = {
    RecordKind.ORGANIZATION: ORGANIZATIONS,
    RecordKind.CONTACT: CONTACTS,
}


def strategy_for(kind: RecordKind) -> KindStrategy:
    try:
        return STRATEGIES[kind]
    except KeyError:
        raise ValidationError(f"{kind.value} records are not deduplicated") from None
