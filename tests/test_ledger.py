#!/usr/bin/env python3
"""
Tests for the dismissal ledger.
"""

import pytest

from dedup.errors import ValidationError
from dedup.ledger import DismissalLedger, SqlLedgerBackend
from dedup.records import RecordKind


@pytest.mark.parametrize("ledger_fixture", ["memory_ledger", "sql_ledger"])
def test_dismiss_and_clear(request, ledger_fixture):
    ledger = request.getfixturevalue(ledger_fixture)

    key = ledger.dismiss("b", "a")
    assert key == "a-b"
    assert ledger.is_dismissed("a", "b")
    assert ledger.is_dismissed("b", "a")
    assert not ledger.is_dismissed("a", "c")

    # Dismissing again is a no-op
    ledger.dismiss("a", "b")
    assert ledger.count() == 1

    ledger.dismiss("a", "c")
    assert ledger.keys() == {"a-b", "a-c"}

    assert ledger.clear_all() == 2
    assert ledger.count() == 0
    assert not ledger.is_dismissed("a", "b")


def test_cannot_dismiss_self_pair(memory_ledger):
    with pytest.raises(ValidationError):
        memory_ledger.dismiss("a", "a")


def test_sql_ledger_survives_new_instances(session_factory):
    DismissalLedger(SqlLedgerBackend(session_factory, RecordKind.ORGANIZATION)).dismiss("x", "y")

    reopened = DismissalLedger(SqlLedgerBackend(session_factory, RecordKind.ORGANIZATION))
    assert reopened.is_dismissed("y", "x")


def test_sql_ledgers_are_scoped_by_kind(session_factory):
    schools = DismissalLedger(SqlLedgerBackend(session_factory, RecordKind.ORGANIZATION))
    coaches = DismissalLedger(SqlLedgerBackend(session_factory, RecordKind.CONTACT))

    schools.dismiss("x", "y")
    assert not coaches.is_dismissed("x", "y")

    coaches.dismiss("x", "y")
    assert coaches.clear_all() == 1
    assert schools.is_dismissed("x", "y")
