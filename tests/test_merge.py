#!/usr/bin/env python3
"""
Tests for merge resolution.
"""

import pytest

from conftest import add_attendance, add_coach, add_school
from dedup.errors import (
    MergeInProgress,
    PartialMergeFailure,
    StaleRecord,
    StoreUnavailable,
    ValidationError,
)
from dedup.kinds import ORGANIZATIONS
from dedup.merge import (
    STEP_DELETE,
    STEP_FILL_FIELDS,
    STEP_REPARENT,
    MergeGuard,
    MergeResolver,
    MergeSummary,
    SqlMergeAudit,
    stage_fields,
)
from dedup.records import OrganizationRecord, RecordKind
from dedup.store import SqlRecordStore


class FlakyStore(SqlRecordStore):
    """Store whose named operations fail until switched back on."""

    def __init__(self, session_factory, failing=()):
        super().__init__(session_factory)
        self.failing = set(failing)

    def _maybe_fail(self, operation):
        if operation in self.failing:
            raise StoreUnavailable(f"{operation} failed: connection reset")

    def update_fields(self, kind, record_id, values, token=None):
        self._maybe_fail("update_fields")
        return super().update_fields(kind, record_id, values, token)

    def reassign_foreign_key(self, dependent_kind, old_parent_id, new_parent_id, token=None):
        self._maybe_fail("reassign_foreign_key")
        return super().reassign_foreign_key(dependent_kind, old_parent_id, new_parent_id, token)

    def delete(self, kind, record_id, token=None):
        self._maybe_fail("delete")
        return super().delete(kind, record_id, token)


def test_stage_fields():
    keep = OrganizationRecord(id="k", name="Texas", city=None, state="TX")
    discard = OrganizationRecord(id="d", name="UT Austin", city="Austin", state="TX", type="  ")
    assert stage_fields(ORGANIZATIONS, keep, discard) == {"city": "Austin"}


def test_merge_fills_fields_and_moves_coaches(store):
    keep = add_school(store, "Texas", state="TX")
    discard = add_school(store, "UT Austin", city="Austin", state="TX")
    kept_coach = add_coach(store, keep, "Ann", "Jones")
    moved = {add_coach(store, discard, "Bob", "Hill").id, add_coach(store, discard, "Cy", "Ray").id}

    summary = MergeResolver(store).merge(RecordKind.ORGANIZATION, keep.id, discard.id)

    assert summary.fields_filled == ["city"]
    assert summary.dependents_moved == 2
    assert summary.completed_steps == [STEP_FILL_FIELDS, STEP_REPARENT, STEP_DELETE]
    assert summary.message == 'Merged "UT Austin" into "Texas" (2 coaches reassigned) - added city'

    school = store.get(RecordKind.ORGANIZATION, keep.id)
    assert school.city == "Austin"
    assert school.state == "TX"
    assert store.get(RecordKind.ORGANIZATION, discard.id) is None

    coaches = {c.id for c in store.list_dependents(RecordKind.ORGANIZATION, keep.id)}
    assert coaches == moved | {kept_coach.id}
    assert store.list_dependents(RecordKind.ORGANIZATION, discard.id) == []


def test_merge_coaches_moves_attendance(store):
    school = add_school(store, "Rice")
    keep = add_coach(store, school, "William", "Smith", email="ws@rice.edu")
    discard = add_coach(store, school, "Bill", "Smith", title="Head Coach", email="bill@rice.edu")
    add_attendance(store, discard, "g1")

    summary = MergeResolver(store).merge(RecordKind.CONTACT, keep.id, discard.id)

    assert summary.fields_filled == ["title"]
    assert summary.message == (
        'Merged "Bill Smith" into "William Smith" (1 attendance record reassigned) - added title'
    )
    coach = store.get(RecordKind.CONTACT, keep.id)
    assert coach.title == "Head Coach"
    assert coach.email == "ws@rice.edu"
    assert [a.game_id for a in store.list_dependents(RecordKind.CONTACT, keep.id)] == ["g1"]


def test_merge_with_nothing_to_fill(store):
    keep = add_school(store, "Rice", city="Houston")
    discard = add_school(store, "Rice University")

    summary = MergeResolver(store).merge(RecordKind.ORGANIZATION, keep.id, discard.id)

    assert summary.fields_filled == []
    assert summary.dependents_moved == 0
    assert summary.completed_steps == [STEP_DELETE]
    assert summary.message == 'Merged "Rice University" into "Rice"'


def test_merge_into_itself(store):
    school = add_school(store, "Rice")
    with pytest.raises(ValidationError):
        MergeResolver(store).merge(RecordKind.ORGANIZATION, school.id, school.id)


def test_merge_stale_record(store):
    keep = add_school(store, "Rice")
    discard = add_school(store, "Rice University")
    resolver = MergeResolver(store)
    resolver.merge(RecordKind.ORGANIZATION, keep.id, discard.id)

    with pytest.raises(StaleRecord) as exc_info:
        resolver.merge(RecordKind.ORGANIZATION, keep.id, discard.id)
    assert exc_info.value.record_id == discard.id
    assert exc_info.value.kind == RecordKind.ORGANIZATION


def test_first_step_failure_is_not_partial(session_factory):
    store = FlakyStore(session_factory, failing={"update_fields"})
    keep = add_school(store, "Texas")
    discard = add_school(store, "UT Austin", city="Austin")

    with pytest.raises(StoreUnavailable):
        MergeResolver(store).merge(RecordKind.ORGANIZATION, keep.id, discard.id)
    assert store.get(RecordKind.ORGANIZATION, discard.id) is not None


def test_partial_failure_then_retry(session_factory):
    store = FlakyStore(session_factory, failing={"delete"})
    keep = add_school(store, "Texas")
    discard = add_school(store, "UT Austin", city="Austin")
    add_coach(store, discard, "Bob", "Hill")
    resolver = MergeResolver(store)

    with pytest.raises(PartialMergeFailure) as exc_info:
        resolver.merge(RecordKind.ORGANIZATION, keep.id, discard.id)
    error = exc_info.value
    assert error.failed_step == STEP_DELETE
    assert error.completed_steps == [STEP_FILL_FIELDS, STEP_REPARENT]
    assert isinstance(error.__cause__, StoreUnavailable)

    # Keep was updated, discard survived
    assert store.get(RecordKind.ORGANIZATION, keep.id).city == "Austin"
    assert store.get(RecordKind.ORGANIZATION, discard.id) is not None

    store.failing.clear()
    summary = resolver.merge(RecordKind.ORGANIZATION, keep.id, discard.id)
    assert summary.completed_steps == [STEP_DELETE]
    assert summary.dependents_moved == 0
    assert store.get(RecordKind.ORGANIZATION, discard.id) is None
    assert len(store.list_dependents(RecordKind.ORGANIZATION, keep.id)) == 1


def test_guard_rejects_overlapping_merge(store):
    keep = add_school(store, "Rice")
    discard = add_school(store, "Rice University")
    guard = MergeGuard()
    resolver = MergeResolver(store, guard)

    with guard.hold(discard.id, "other"):
        assert guard.is_busy(discard.id)
        with pytest.raises(MergeInProgress) as exc_info:
            resolver.merge(RecordKind.ORGANIZATION, keep.id, discard.id)
        assert exc_info.value.record_ids == [str(discard.id)]

    assert not guard.is_busy(discard.id)
    resolver.merge(RecordKind.ORGANIZATION, keep.id, discard.id)


def test_merge_is_audited(store, session_factory):
    keep = add_school(store, "Texas")
    discard = add_school(store, "UT Austin", city="Austin")
    audit = SqlMergeAudit(session_factory)

    summary = MergeResolver(store, audit=audit).merge(RecordKind.ORGANIZATION, keep.id, discard.id)
    assert summary.audited

    history = audit.history(keep.id)
    assert len(history) == 1
    assert history[0].discarded_label == "UT Austin"
    assert history[0].fields_filled == ["city"]
    assert audit.history(discard.id)[0].kept_id == keep.id


def test_summary_message_singular():
    summary = MergeSummary(
        kind=RecordKind.ORGANIZATION,
        kept_id="k",
        discarded_id="d",
        kept_label="University of Missouri",
        discarded_label="Mizzou",
        fields_filled=["city", "state"],
        dependents_moved=1,
    )
    assert summary.message == (
        'Merged "Mizzou" into "University of Missouri" (1 coach reassigned) - added city, state'
    )
