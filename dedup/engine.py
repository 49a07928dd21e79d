"""
Dedup engine: the data flow an operator session drives.

    record store -> candidate generator (minus dismissed pairs) -> ranker
    -> operator decision -> merge resolver -> record store -> regenerate
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from sqlalchemy.orm import sessionmaker

from config.logging import get_logger
from dedup.candidates import CandidateGenerator, CandidatePair, pair_key, rank
from dedup.cancel import CancelToken
from dedup.errors import DedupError, StaleRecord, ValidationError
from dedup.kinds import strategy_for
from dedup.ledger import DismissalLedger, SqlLedgerBackend
from dedup.matching.classifiers import MatchThresholds, MatchType
from dedup.merge import MergeGuard, MergeResolver, MergeSummary, SqlMergeAudit
from dedup.records import RecordKind
from dedup.store import RecordStore, SqlRecordStore

logger = get_logger("dedup.engine")

DEDUPED_KINDS = (RecordKind.ORGANIZATION, RecordKind.CONTACT)


@dataclass
class DuplicateReport:
    """Ranked candidates for one kind plus the counts shown beside them."""
    kind: RecordKind
    total_records: int
    candidates: list[CandidatePair]
    dismissed_count: int = 0
    # record id -> coaches (for schools) or attendance rows (for coaches)
    dependent_counts: dict[str, int] = field(default_factory=dict)
    truncated: bool = False

    @property
    def exact_count(self) -> int:
        return sum(1 for c in self.candidates if c.match_type == MatchType.EXACT)

    @property
    def fuzzy_count(self) -> int:
        return sum(1 for c in self.candidates if c.match_type == MatchType.FUZZY)

    def filter(self, match_type: Union[MatchType, str, None] = None) -> list[CandidatePair]:
        """Candidates of one match type; None or "all" returns every candidate."""
        if match_type is None or match_type == "all":
            return list(self.candidates)
        if isinstance(match_type, str):
            try:
                match_type = MatchType(match_type)
            except ValueError:
                raise ValidationError(f"unknown match type '{match_type}'") from None
        return [c for c in self.candidates if c.match_type == match_type]

    def dependents_of(self, record_id) -> int:
        return self.dependent_counts.get(str(record_id), 0)

    def discard_pair(self, id_a, id_b) -> None:
        key = pair_key(id_a, id_b)
        self.candidates = [c for c in self.candidates if c.pair_key != key]


class DedupEngine:
    """
    One engine for schools and coaches, parameterized by record kind.

    Usage:
        engine = DedupEngine.from_session_factory(SessionLocal)
        report = engine.find_duplicates(RecordKind.ORGANIZATION)
        top = report.candidates[0]
        engine.merge(RecordKind.ORGANIZATION, top.record_a.id, top.record_b.id)
    """

    def __init__(
        self,
        store: RecordStore,
        ledgers: dict[RecordKind, DismissalLedger],
        resolver: Optional[MergeResolver] = None,
        thresholds: Optional[MatchThresholds] = None,
        workers: Optional[int] = None,
        max_comparisons: Optional[int] = None,
        block_by_state: Optional[bool] = None,
    ):
        self.store = store
        self.ledgers = ledgers
        self.resolver = resolver or MergeResolver(store, MergeGuard())
        self.thresholds = thresholds or MatchThresholds.from_settings()
        self.workers = workers
        self.max_comparisons = max_comparisons
        self.block_by_state = block_by_state
        self.reports: dict[RecordKind, DuplicateReport] = {}

    @classmethod
    def from_session_factory(cls, session_factory: sessionmaker, **kwargs) -> "DedupEngine":
        """Engine wired to SQL-backed store, ledgers and merge log."""
        store = SqlRecordStore(session_factory)
        ledgers = {
            kind: DismissalLedger(SqlLedgerBackend(session_factory, kind))
            for kind in DEDUPED_KINDS
        }
        resolver = MergeResolver(store, MergeGuard(), SqlMergeAudit(session_factory))
        return cls(store, ledgers, resolver=resolver, **kwargs)

    def ledger(self, kind: RecordKind) -> DismissalLedger:
        try:
            return self.ledgers[kind]
        except KeyError:
            raise ValidationError(f"no dismissal ledger for {kind.value} records") from None

    def generator(self, kind: RecordKind) -> CandidateGenerator:
        return CandidateGenerator(
            strategy_for(kind),
            ledger=self.ledger(kind),
            thresholds=self.thresholds,
            workers=self.workers,
            max_comparisons=self.max_comparisons,
            block_by_state=self.block_by_state,
        )

    def find_duplicates(self, kind: RecordKind, token: Optional[CancelToken] = None) -> DuplicateReport:
        """
        Load every record of a kind, generate and rank candidates.

        Read-only, so it is always safe to run again.
        """
        records = self.store.list_all(kind, token)
        generator = self.generator(kind)
        candidates = rank(generator.generate(records, token))

        report = DuplicateReport(
            kind=kind,
            total_records=len(records),
            candidates=candidates,
            dismissed_count=self.ledger(kind).count(),
            dependent_counts=self.store.count_dependents(kind, token),
            truncated=generator.truncated,
        )
        self.reports[kind] = report

        logger.info(
            f"{kind.value}: {report.total_records} records, {report.exact_count} exact, "
            f"{report.fuzzy_count} fuzzy, {report.dismissed_count} ignored"
        )
        return report

    def dismiss(self, kind: RecordKind, id_a, id_b) -> str:
        """Mark a pair "not a duplicate" and drop it from the current report."""
        key = self.ledger(kind).dismiss(id_a, id_b)
        report = self.reports.get(kind)
        if report is not None:
            report.discard_pair(id_a, id_b)
            report.dismissed_count = self.ledger(kind).count()
        return key

    def is_dismissed(self, kind: RecordKind, id_a, id_b) -> bool:
        return self.ledger(kind).is_dismissed(id_a, id_b)

    def clear_dismissed(self, kind: RecordKind, token: Optional[CancelToken] = None) -> DuplicateReport:
        """Forget every dismissal for a kind and re-check the full record set."""
        self.ledger(kind).clear_all()
        return self.find_duplicates(kind, token)

    def merge(
        self,
        kind: RecordKind,
        keep_id,
        discard_id,
        token: Optional[CancelToken] = None,
    ) -> MergeSummary:
        """
        Merge discard into keep, then regenerate candidates so nothing refers
        to the deleted record.

        A failed refresh does not undo or hide the merge: the summary is
        returned with refreshed=False and the stale reports are dropped.
        """
        try:
            summary = self.resolver.merge(kind, keep_id, discard_id, token)
        except StaleRecord:
            # The cached candidates are out of date; rebuild before reporting
            self._refresh_after_merge(kind, token)
            raise

        try:
            self._refresh_after_merge(kind, token)
        except DedupError as e:
            # The merge itself is committed; only the cached candidates are unknown
            logger.error(f"Merge committed but refreshing {kind.value} candidates failed: {e}")
            self.reports.pop(kind, None)
            if kind == RecordKind.ORGANIZATION:
                self.reports.pop(RecordKind.CONTACT, None)
            summary.refreshed = False
        return summary

    def _refresh_after_merge(self, kind: RecordKind, token: Optional[CancelToken]) -> None:
        self.find_duplicates(kind, token)
        # Merging schools pulls coaches together, which can create coach duplicates
        if kind == RecordKind.ORGANIZATION and RecordKind.CONTACT in self.reports:
            self.find_duplicates(RecordKind.CONTACT, token)
