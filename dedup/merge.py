"""
Merge resolution: fold a discarded duplicate into the record being kept.

Steps, each its own store call:
1. Fill keep's empty optional fields from discard (one update, skipped when
   there is nothing to fill)
2. Re-parent discard's dependents onto keep (a school's coaches, a coach's
   attendance)
3. Delete discard

The steps are not one transaction. If a later step fails after an earlier one
committed, PartialMergeFailure is raised; running the same merge again only
repeats the work that is left.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config.logging import get_logger
from dedup.cancel import CancelToken
from dedup.errors import (
    DedupError,
    MergeInProgress,
    PartialMergeFailure,
    StaleRecord,
    StoreUnavailable,
    ValidationError,
)
from dedup.kinds import KindStrategy, strategy_for
from dedup.models import MergeLog
from dedup.records import Record, RecordKind, is_blank
from dedup.store import RecordStore

logger = get_logger("dedup.merge")

STEP_FILL_FIELDS = "fill_fields"
STEP_REPARENT = "reparent_dependents"
STEP_DELETE = "delete_discarded"


@dataclass
class MergeSummary:
    """What a merge did, for operator feedback."""
    kind: RecordKind
    kept_id: str
    discarded_id: str
    kept_label: str
    discarded_label: str
    fields_filled: list[str] = field(default_factory=list)
    dependents_moved: int = 0
    completed_steps: list[str] = field(default_factory=list)
    audited: bool = False
    # False when the merge committed but candidates could not be regenerated
    refreshed: bool = True

    @property
    def message(self) -> str:
        """e.g. Merged "Mizzou" into "University of Missouri" (3 coaches reassigned) - added city"""
        message = f'Merged "{self.discarded_label}" into "{self.kept_label}"'
        if self.dependents_moved > 0:
            strategy = strategy_for(self.kind)
            message += f" ({strategy.describe_dependents(self.dependents_moved)} reassigned)"
        if self.fields_filled:
            message += f" - added {', '.join(self.fields_filled)}"
        return message


class MergeGuard:
    """
    Tracks record ids with a merge in flight.

    A merge whose keep or discard id is already busy is rejected rather than
    queued; the operator retries once the first merge finishes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._busy: set[str] = set()

    @contextmanager
    def hold(self, *record_ids):
        ids = {str(record_id) for record_id in record_ids}
        with self._lock:
            overlap = ids & self._busy
            if overlap:
                raise MergeInProgress(overlap)
            self._busy |= ids
        try:
            yield
        finally:
            with self._lock:
                self._busy -= ids

    def is_busy(self, record_id) -> bool:
        with self._lock:
            return str(record_id) in self._busy


class SqlMergeAudit:
    """Writes a merge_log row per completed merge."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record(self, summary: MergeSummary) -> None:
        try:
            with self.session_factory() as session, session.begin():
                session.add(MergeLog(
                    kind=summary.kind.value,
                    kept_id=str(summary.kept_id),
                    discarded_id=str(summary.discarded_id),
                    kept_label=summary.kept_label,
                    discarded_label=summary.discarded_label,
                    fields_filled=list(summary.fields_filled),
                    dependents_moved=summary.dependents_moved,
                ))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"writing merge log failed: {e}") from e

    def history(self, record_id) -> list[MergeLog]:
        """Merges a record took part in, newest first."""
        try:
            with self.session_factory() as session:
                rows = session.scalars(
                    select(MergeLog)
                    .where(or_(
                        MergeLog.kept_id == str(record_id),
                        MergeLog.discarded_id == str(record_id),
                    ))
                    .order_by(MergeLog.created_at.desc())
                ).all()
                session.expunge_all()
                return list(rows)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"reading merge log failed: {e}") from e


def stage_fields(strategy: KindStrategy, keep: Record, discard: Record) -> dict:
    """Optional fields empty on keep and present on discard."""
    staged = {}
    for name in strategy.mergeable_fields:
        if is_blank(getattr(keep, name)) and not is_blank(getattr(discard, name)):
            staged[name] = getattr(discard, name)
    return staged


class MergeResolver:
    """
    Merges one record into another of the same kind.

    Usage:
        resolver = MergeResolver(store)
        summary = resolver.merge(RecordKind.ORGANIZATION, keep_id, discard_id)
        print(summary.message)
    """

    def __init__(
        self,
        store: RecordStore,
        guard: Optional[MergeGuard] = None,
        audit: Optional[SqlMergeAudit] = None,
    ):
        self.store = store
        self.guard = guard or MergeGuard()
        self.audit = audit

    def merge(
        self,
        kind: RecordKind,
        keep_id,
        discard_id,
        token: Optional[CancelToken] = None,
    ) -> MergeSummary:
        """
        Merge discard into keep.

        Raises:
            ValidationError: keep and discard are the same record
            StaleRecord: either record no longer exists
            MergeInProgress: another merge holds one of the ids
            StoreUnavailable: the first change could not be made (nothing changed)
            PartialMergeFailure: a later step failed after an earlier one committed
        """
        strategy = strategy_for(kind)
        if str(keep_id) == str(discard_id):
            raise ValidationError("cannot merge a record into itself")

        with self.guard.hold(keep_id, discard_id):
            keep = self._fetch(kind, keep_id, token)
            discard = self._fetch(kind, discard_id, token)

            summary = MergeSummary(
                kind=kind,
                kept_id=str(keep.id),
                discarded_id=str(discard.id),
                kept_label=strategy.label(keep),
                discarded_label=strategy.label(discard),
            )
            logger.info(
                f"Merging {kind.value} '{summary.discarded_label}' ({discard.id}) "
                f"into '{summary.kept_label}' ({keep.id})"
            )

            staged = stage_fields(strategy, keep, discard)
            if staged:
                self._run_step(summary, STEP_FILL_FIELDS, lambda: self.store.update_fields(
                    kind, keep.id, staged, token
                ))
                summary.fields_filled = list(staged)
                summary.completed_steps.append(STEP_FILL_FIELDS)
                logger.info(f"Filled {', '.join(staged)} from duplicate")

            if strategy.dependent_kind is not None:
                moved = self._run_step(summary, STEP_REPARENT, lambda: self.store.reassign_foreign_key(
                    strategy.dependent_kind, discard.id, keep.id, token
                ))
                summary.dependents_moved = moved
                if moved:
                    summary.completed_steps.append(STEP_REPARENT)
                logger.info(f"Moved {strategy.describe_dependents(moved)}")

            deleted = self._run_step(summary, STEP_DELETE, lambda: self.store.delete(
                kind, discard.id, token
            ))
            if deleted:
                summary.completed_steps.append(STEP_DELETE)
            else:
                logger.warning(f"{kind.value} {discard.id} was already deleted")

        if self.audit is not None:
            try:
                self.audit.record(summary)
                summary.audited = True
            except StoreUnavailable as e:
                logger.error(f"Merge completed but was not written to the merge log: {e}")

        logger.info(summary.message)
        return summary

    def _fetch(self, kind: RecordKind, record_id, token) -> Record:
        record = self.store.get(kind, record_id, token)
        if record is None:
            logger.warning(f"{kind.value} {record_id} no longer exists; candidates are stale")
            raise StaleRecord(kind, record_id)
        return record

    def _run_step(self, summary: MergeSummary, step: str, action):
        """
        Run one step. A failure after an earlier step committed becomes
        PartialMergeFailure; a failure before any commit is raised as is.
        """
        try:
            return action()
        except DedupError as e:
            if not summary.completed_steps:
                raise
            logger.error(
                f"Merge of {summary.discarded_id} into {summary.kept_id} failed at "
                f"'{step}' after {', '.join(summary.completed_steps)}: {e}"
            )
            raise PartialMergeFailure(summary.completed_steps, step, summary) from e
