#!/usr/bin/env python3
"""
Tests for the dedup engine's operator flow.
"""

import pytest

from conftest import add_attendance, add_coach, add_school
from dedup.engine import DedupEngine
from dedup.errors import StaleRecord, StoreUnavailable, ValidationError
from dedup.matching import MatchType
from dedup.merge import STEP_DELETE, STEP_FILL_FIELDS, STEP_REPARENT
from dedup.records import RecordKind


@pytest.fixture
def directory(store):
    schools = {
        "missouri": add_school(store, "University of Missouri", state="MO", conference="SEC"),
        "mizzou": add_school(store, "Missouri", city="Columbia", state="MO"),
        "st_marys": add_school(store, "St. Mary's College", state="CA"),
        "saint_marys": add_school(store, "Saint Mary's University", state="CA"),
        "alabama": add_school(store, "Alabama", state="AL"),
    }
    add_coach(store, schools["missouri"], "Bill", "Smith")
    coach = add_coach(store, schools["mizzou"], "William", "Smith")
    add_attendance(store, coach)
    return schools


def test_find_duplicates(engine, directory):
    report = engine.find_duplicates(RecordKind.ORGANIZATION)

    assert report.total_records == 5
    assert report.exact_count == 1
    assert report.fuzzy_count == 1
    assert report.dismissed_count == 0
    assert not report.truncated

    top = report.candidates[0]
    assert top.match_type == MatchType.EXACT
    assert {top.record_a.id, top.record_b.id} == {directory["missouri"].id, directory["mizzou"].id}
    assert report.dependents_of(directory["missouri"].id) == 1
    assert report.dependents_of(directory["alabama"].id) == 0


def test_report_filter(engine, directory):
    report = engine.find_duplicates(RecordKind.ORGANIZATION)
    assert len(report.filter("all")) == 2
    assert [c.match_type for c in report.filter("fuzzy")] == [MatchType.FUZZY]
    assert [c.match_type for c in report.filter(MatchType.EXACT)] == [MatchType.EXACT]
    with pytest.raises(ValidationError):
        report.filter("maybe")


def test_coaches_at_different_schools_are_not_candidates(engine, directory):
    report = engine.find_duplicates(RecordKind.CONTACT)
    assert report.candidates == []


def test_dismiss_persists_until_cleared(engine, session_factory, directory):
    engine.find_duplicates(RecordKind.ORGANIZATION)
    engine.dismiss(RecordKind.ORGANIZATION, directory["saint_marys"].id, directory["st_marys"].id)

    report = engine.reports[RecordKind.ORGANIZATION]
    assert len(report.candidates) == 1
    assert report.dismissed_count == 1

    # A fresh session sees the same dismissal
    other = DedupEngine.from_session_factory(session_factory, workers=1)
    assert other.is_dismissed(RecordKind.ORGANIZATION, directory["st_marys"].id, directory["saint_marys"].id)
    assert len(other.find_duplicates(RecordKind.ORGANIZATION).candidates) == 1
    assert not other.is_dismissed(RecordKind.CONTACT, directory["st_marys"].id, directory["saint_marys"].id)

    report = other.clear_dismissed(RecordKind.ORGANIZATION)
    assert len(report.candidates) == 2
    assert report.dismissed_count == 0


def test_merge_refreshes_candidates(engine, directory):
    engine.find_duplicates(RecordKind.CONTACT)
    keep, discard = directory["missouri"], directory["mizzou"]

    summary = engine.merge(RecordKind.ORGANIZATION, keep.id, discard.id)
    assert summary.fields_filled == ["city"]
    assert summary.dependents_moved == 1
    assert summary.audited

    schools = engine.reports[RecordKind.ORGANIZATION]
    assert schools.total_records == 4
    assert not any(c.involves(discard.id) for c in schools.candidates)

    # Both Smiths now coach at the same school
    coaches = engine.reports[RecordKind.CONTACT]
    assert len(coaches.candidates) == 1
    assert coaches.candidates[0].match_type == MatchType.FUZZY

    coach_a, coach_b = coaches.candidates[0].record_a, coaches.candidates[0].record_b
    summary = engine.merge(RecordKind.CONTACT, coach_a.id, coach_b.id)
    assert engine.reports[RecordKind.CONTACT].candidates == []
    assert engine.store.count_dependents(RecordKind.CONTACT) == {coach_a.id: 1}


def test_merge_stale_refreshes_report(engine, store, directory):
    report = engine.find_duplicates(RecordKind.ORGANIZATION)
    store.delete(RecordKind.ORGANIZATION, directory["saint_marys"].id)

    with pytest.raises(StaleRecord):
        engine.merge(RecordKind.ORGANIZATION, directory["st_marys"].id, directory["saint_marys"].id)

    refreshed = engine.reports[RecordKind.ORGANIZATION]
    assert refreshed is not report
    assert len(refreshed.candidates) == 1


def test_unknown_kind(engine):
    with pytest.raises(ValidationError):
        engine.find_duplicates(RecordKind.ATTENDANCE)


def test_merge_succeeds_when_refresh_fails(engine, store, directory, monkeypatch):
    engine.find_duplicates(RecordKind.ORGANIZATION)
    engine.find_duplicates(RecordKind.CONTACT)
    keep, discard = directory["missouri"], directory["mizzou"]

    def unavailable(kind, token=None):
        raise StoreUnavailable("list organization failed: connection reset")

    monkeypatch.setattr(engine.store, "list_all", unavailable)
    summary = engine.merge(RecordKind.ORGANIZATION, keep.id, discard.id)
    monkeypatch.undo()

    assert not summary.refreshed
    assert summary.completed_steps == [STEP_FILL_FIELDS, STEP_REPARENT, STEP_DELETE]
    assert store.get(RecordKind.ORGANIZATION, discard.id) is None
    assert store.get(RecordKind.ORGANIZATION, keep.id).city == "Columbia"
    # Stale reports are dropped rather than left pointing at the deleted school
    assert RecordKind.ORGANIZATION not in engine.reports
    assert RecordKind.CONTACT not in engine.reports

    report = engine.find_duplicates(RecordKind.ORGANIZATION)
    assert not any(c.involves(discard.id) for c in report.candidates)


def test_merge_is_refreshed_by_default(engine, directory):
    summary = engine.merge(RecordKind.ORGANIZATION, directory["missouri"].id, directory["mizzou"].id)
    assert summary.refreshed
