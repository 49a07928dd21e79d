#!/usr/bin/env python3
"""
Tests for the SQL record store.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import add_attendance, add_coach, add_school
from dedup.errors import StaleRecord, StoreUnavailable, ValidationError
from dedup.records import OrganizationRecord, RecordKind
from dedup.store import SqlRecordStore


def test_list_all_pages_through_everything(session_factory):
    store = SqlRecordStore(session_factory, page_size=2)
    for name in ["Rice", "Baylor", "TCU", "SMU", "Houston"]:
        add_school(store, name, state="TX")

    schools = store.list_all(RecordKind.ORGANIZATION)
    assert [s.name for s in schools] == ["Baylor", "Houston", "Rice", "SMU", "TCU"]
    assert all(isinstance(s, OrganizationRecord) for s in schools)


def test_get_and_insert(store):
    school = add_school(store, "Rice", city="Houston", state="TX")
    assert school.id

    assert store.get(RecordKind.ORGANIZATION, school.id) == school
    assert store.get(RecordKind.ORGANIZATION, "missing") is None


def test_dependents(store):
    rice = add_school(store, "Rice")
    baylor = add_school(store, "Baylor")
    coach = add_coach(store, rice, "Ann", "Jones")
    add_coach(store, rice, "Bob", "Hill")
    add_attendance(store, coach, "g1")
    add_attendance(store, coach, "g2")

    assert {c.first_name for c in store.list_dependents(RecordKind.ORGANIZATION, rice.id)} == {"Ann", "Bob"}
    assert store.list_dependents(RecordKind.ORGANIZATION, baylor.id) == []
    assert store.count_dependents(RecordKind.ORGANIZATION) == {rice.id: 2}
    assert store.count_dependents(RecordKind.CONTACT) == {coach.id: 2}

    with pytest.raises(ValidationError):
        store.count_dependents(RecordKind.ATTENDANCE)


def test_update_fields(store):
    school = add_school(store, "Rice")
    updated = store.update_fields(RecordKind.ORGANIZATION, school.id, {"city": "Houston"})
    assert updated.city == "Houston"
    assert store.get(RecordKind.ORGANIZATION, school.id).city == "Houston"

    with pytest.raises(ValidationError):
        store.update_fields(RecordKind.ORGANIZATION, school.id, {"mascot": "Owls"})
    with pytest.raises(StaleRecord):
        store.update_fields(RecordKind.ORGANIZATION, "missing", {"city": "Waco"})


def test_reassign_and_delete(store):
    rice = add_school(store, "Rice")
    baylor = add_school(store, "Baylor")
    add_coach(store, baylor, "Ann", "Jones")
    add_coach(store, baylor, "Bob", "Hill")

    assert store.reassign_foreign_key(RecordKind.CONTACT, baylor.id, rice.id) == 2
    assert store.reassign_foreign_key(RecordKind.CONTACT, baylor.id, rice.id) == 0
    assert len(store.list_dependents(RecordKind.ORGANIZATION, rice.id)) == 2

    assert store.delete(RecordKind.ORGANIZATION, baylor.id) is True
    assert store.delete(RecordKind.ORGANIZATION, baylor.id) is False

    with pytest.raises(ValidationError):
        store.reassign_foreign_key(RecordKind.ORGANIZATION, rice.id, baylor.id)


def test_store_failures_are_wrapped():
    # No tables created
    bare = sessionmaker(bind=create_engine("sqlite://"))
    store = SqlRecordStore(bare)
    with pytest.raises(StoreUnavailable) as exc_info:
        store.list_all(RecordKind.ORGANIZATION)
    assert exc_info.value.__cause__ is not None
