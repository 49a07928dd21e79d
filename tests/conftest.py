"""
Shared fixtures: an in-memory SQLite directory per test.
"""

import os
import sys
from pathlib import Path

# Keep test runs out of logs/
os.environ.setdefault("LOG_TO_FILE", "false")

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dedup.database import init_db
from dedup.engine import DedupEngine
from dedup.ledger import DismissalLedger, MemoryLedgerBackend, SqlLedgerBackend
from dedup.records import (
    AttendanceRecord,
    ContactRecord,
    OrganizationRecord,
    RecordKind,
)
from dedup.store import SqlRecordStore


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def store(session_factory):
    return SqlRecordStore(session_factory)


@pytest.fixture
def memory_ledger():
    return DismissalLedger(MemoryLedgerBackend())


@pytest.fixture
def sql_ledger(session_factory):
    return DismissalLedger(SqlLedgerBackend(session_factory, RecordKind.ORGANIZATION))


@pytest.fixture
def engine(session_factory):
    return DedupEngine.from_session_factory(session_factory, workers=1)


def add_school(store, name, **fields):
    return store.insert(RecordKind.ORGANIZATION, OrganizationRecord(id=None, name=name, **fields))


def add_coach(store, school, first_name, last_name, **fields):
    return store.insert(
        RecordKind.CONTACT,
        ContactRecord(
            id=None,
            first_name=first_name,
            last_name=last_name,
            organization_id=school.id,
            **fields,
        ),
    )


def add_attendance(store, coach, game_id="game-1"):
    return store.insert(
        RecordKind.ATTENDANCE, AttendanceRecord(id=None, contact_id=coach.id, game_id=game_id)
    )
