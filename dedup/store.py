"""
Record store: the engine's only view of the directory.

RecordStore is the abstract collaborator; SqlRecordStore implements it on
SQLAlchemy. Every call runs in its own transaction, so a multi-step merge is
a sequence of independent commits.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, fields
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config.logging import get_logger
from config.settings import settings
from dedup.cancel import CancelToken, check_token
from dedup.errors import StaleRecord, StoreUnavailable, ValidationError
from dedup.models import Attendance, Coach, School
from dedup.records import (
    AttendanceRecord,
    ContactRecord,
    OrganizationRecord,
    Record,
    RecordKind,
)

logger = get_logger("dedup.store")


class RecordStore(ABC):
    """External record store used by the engine."""

    @abstractmethod
    def list_all(self, kind: RecordKind, token: Optional[CancelToken] = None) -> list[Record]:
        """Every record of a kind. Paging, if any, is internal."""

    @abstractmethod
    def get(self, kind: RecordKind, record_id, token: Optional[CancelToken] = None) -> Optional[Record]:
        ...

    @abstractmethod
    def list_dependents(
        self, kind: RecordKind, parent_id, token: Optional[CancelToken] = None
    ) -> list[Record]:
        """Records whose foreign key points at parent_id (a record of `kind`)."""

    @abstractmethod
    def count_dependents(self, kind: RecordKind, token: Optional[CancelToken] = None) -> dict[str, int]:
        """parent id -> number of dependents, for parents that have any."""

    @abstractmethod
    def update_fields(
        self, kind: RecordKind, record_id, values: dict, token: Optional[CancelToken] = None
    ) -> Record:
        ...

    @abstractmethod
    def reassign_foreign_key(
        self, dependent_kind: RecordKind, old_parent_id, new_parent_id,
        token: Optional[CancelToken] = None,
    ) -> int:
        """Point dependents of old_parent_id at new_parent_id; returns rows moved."""

    @abstractmethod
    def delete(self, kind: RecordKind, record_id, token: Optional[CancelToken] = None) -> bool:
        """False when the record was already gone."""


@dataclass(frozen=True)
class _Table:
    """How a record kind maps onto an ORM model."""
    model: type
    record_type: type
    # record field -> model attribute, where the names differ
    renames: dict
    order_by: tuple
    parent_column: Optional[str] = None

    def column(self, field_name: str) -> str:
        return self.renames.get(field_name, field_name)

    def to_record(self, row) -> Record:
        values = {f.name: getattr(row, self.column(f.name)) for f in fields(self.record_type)}
        return self.record_type(**values)

    def to_row_values(self, record: Record) -> dict:
        return {self.column(f.name): getattr(record, f.name) for f in fields(self.record_type)}


TABLES = {
    RecordKind.ORGANIZATION: _Table(
        model=School,
        record_type=OrganizationRecord,
        renames={"name": "school"},
        order_by=(School.school, School.id),
    ),
    RecordKind.CONTACT: _Table(
        model=Coach,
        record_type=ContactRecord,
        renames={"organization_id": "school_id"},
        order_by=(Coach.last_name, Coach.first_name, Coach.id),
        parent_column="school_id",
    ),
    RecordKind.ATTENDANCE: _Table(
        model=Attendance,
        record_type=AttendanceRecord,
        renames={"contact_id": "coach_id"},
        order_by=(Attendance.id,),
        parent_column="coach_id",
    ),
}

# parent kind -> kind of the records that point at it
DEPENDENT_KINDS = {
    RecordKind.ORGANIZATION: RecordKind.CONTACT,
    RecordKind.CONTACT: RecordKind.ATTENDANCE,
}


class SqlRecordStore(RecordStore):
    """
    RecordStore on a SQLAlchemy session factory.

    Usage:
        store = SqlRecordStore(SessionLocal)
        schools = store.list_all(RecordKind.ORGANIZATION)
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        page_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.page_size = page_size or settings.STORE_PAGE_SIZE

    @contextmanager
    def _session(self, operation: str, token: Optional[CancelToken]):
        check_token(token, operation)
        try:
            with self.session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error(f"{operation} failed: {e}")
            raise StoreUnavailable(f"{operation} failed: {e}") from e

    def _dependent_table(self, kind: RecordKind) -> _Table:
        try:
            return TABLES[DEPENDENT_KINDS[kind]]
        except KeyError:
            raise ValidationError(f"{kind.value} records have no dependents") from None

    def list_all(self, kind, token=None):
        table = TABLES[kind]
        records = []
        page = 0

        # Fetch in pages so a capped backend still returns the full set
        while True:
            with self._session(f"list {kind.value}", token) as session:
                rows = session.scalars(
                    select(table.model)
                    .order_by(*table.order_by)
                    .offset(page * self.page_size)
                    .limit(self.page_size)
                ).all()
                records.extend(table.to_record(row) for row in rows)
            if len(rows) < self.page_size:
                break
            page += 1

        logger.debug(f"Loaded {len(records)} {kind.value} records in {page + 1} page(s)")
        return records

    def get(self, kind, record_id, token=None):
        table = TABLES[kind]
        with self._session(f"get {kind.value} {record_id}", token) as session:
            row = session.get(table.model, str(record_id))
            return table.to_record(row) if row is not None else None

    def insert(self, kind: RecordKind, record: Record, token: Optional[CancelToken] = None) -> Record:
        table = TABLES[kind]
        with self._session(f"insert {kind.value}", token) as session:
            values = table.to_row_values(record)
            if values.get("id") is None:
                values.pop("id", None)
            row = table.model(**values)
            session.add(row)
            session.flush()
            return table.to_record(row)

    def list_dependents(self, kind, parent_id, token=None):
        table = self._dependent_table(kind)
        parent = getattr(table.model, table.parent_column)
        with self._session(f"list dependents of {kind.value} {parent_id}", token) as session:
            rows = session.scalars(
                select(table.model).where(parent == str(parent_id)).order_by(*table.order_by)
            ).all()
            return [table.to_record(row) for row in rows]

    def count_dependents(self, kind, token=None):
        table = self._dependent_table(kind)
        parent = getattr(table.model, table.parent_column)
        with self._session(f"count dependents of {kind.value}", token) as session:
            rows = session.execute(
                select(parent, func.count()).group_by(parent)
            ).all()
            return {str(parent_id): count for parent_id, count in rows}

    def update_fields(self, kind, record_id, values, token=None):
        table = TABLES[kind]
        allowed = {f.name for f in fields(table.record_type)} - {"id"}
        unknown = set(values) - allowed
        if unknown:
            raise ValidationError(f"cannot update {kind.value} fields: {', '.join(sorted(unknown))}")

        with self._session(f"update {kind.value} {record_id}", token) as session:
            row = session.get(table.model, str(record_id))
            if row is None:
                raise StaleRecord(kind, record_id)
            for name, value in values.items():
                setattr(row, table.column(name), value)
            session.flush()
            return table.to_record(row)

    def reassign_foreign_key(self, dependent_kind, old_parent_id, new_parent_id, token=None):
        table = TABLES[dependent_kind]
        if table.parent_column is None:
            raise ValidationError(f"{dependent_kind.value} records have no parent")
        parent = getattr(table.model, table.parent_column)

        with self._session(
            f"reassign {dependent_kind.value} {old_parent_id} -> {new_parent_id}", token
        ) as session:
            result = session.execute(
                update(table.model)
                .where(parent == str(old_parent_id))
                .values({table.parent_column: str(new_parent_id)})
            )
            return result.rowcount

    def delete(self, kind, record_id, token=None):
        table = TABLES[kind]
        # Leaves dependents untouched; callers re-parent them first
        with self._session(f"delete {kind.value} {record_id}", token) as session:
            result = session.execute(
                delete(table.model).where(table.model.id == str(record_id))
            )
            return result.rowcount > 0
