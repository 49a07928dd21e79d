"""
Dismissal ledger: pairs an operator marked "not a duplicate".

Stored server-side, one ledger per record kind, so a dismissal is shared by
every operator and session. Entries never expire; clear_all() is the only
way to bring dismissed pairs back.
"""

from abc import ABC, abstractmethod

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config.logging import get_logger
from dedup.candidates import pair_key
from dedup.errors import StoreUnavailable, ValidationError
from dedup.models import DismissedPair
from dedup.records import RecordKind

logger = get_logger("dedup.ledger")


class LedgerBackend(ABC):
    """Key-value persistence for pair keys."""

    @abstractmethod
    def get_all(self) -> set[str]:
        ...

    @abstractmethod
    def add(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> int:
        """Remove every key; returns how many were removed."""


class MemoryLedgerBackend(LedgerBackend):
    """Process-local backend, for tests and dry runs."""

    def __init__(self, keys=()):
        self._keys = set(keys)

    def get_all(self):
        return set(self._keys)

    def add(self, key):
        self._keys.add(key)

    def clear(self):
        count = len(self._keys)
        self._keys.clear()
        return count


class SqlLedgerBackend(LedgerBackend):
    """Pair keys in the dismissed_pairs table, scoped by record kind."""

    def __init__(self, session_factory: sessionmaker, kind: RecordKind):
        self.session_factory = session_factory
        self.kind = kind

    def get_all(self):
        try:
            with self.session_factory() as session:
                rows = session.scalars(
                    select(DismissedPair.pair_key).where(DismissedPair.kind == self.kind.value)
                ).all()
                return set(rows)
        except SQLAlchemyError as e:
            logger.error(f"Loading dismissed {self.kind.value} pairs failed: {e}")
            raise StoreUnavailable(f"loading dismissed pairs failed: {e}") from e

    def add(self, key):
        try:
            with self.session_factory() as session, session.begin():
                session.add(DismissedPair(kind=self.kind.value, pair_key=key))
        except IntegrityError:
            # Already dismissed
            logger.debug(f"Pair {key} was already dismissed")
        except SQLAlchemyError as e:
            logger.error(f"Dismissing pair {key} failed: {e}")
            raise StoreUnavailable(f"dismissing pair failed: {e}") from e

    def clear(self):
        try:
            with self.session_factory() as session, session.begin():
                result = session.execute(
                    delete(DismissedPair).where(DismissedPair.kind == self.kind.value)
                )
                return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Clearing dismissed {self.kind.value} pairs failed: {e}")
            raise StoreUnavailable(f"clearing dismissed pairs failed: {e}") from e


class DismissalLedger:
    """
    Remembers operator "not a duplicate" decisions.

    Usage:
        ledger = DismissalLedger(SqlLedgerBackend(SessionLocal, RecordKind.ORGANIZATION))
        ledger.dismiss(school_a.id, school_b.id)
        ledger.is_dismissed(school_b.id, school_a.id)  # True
    """

    def __init__(self, backend: LedgerBackend):
        self.backend = backend

    def dismiss(self, id_a, id_b) -> str:
        if str(id_a) == str(id_b):
            raise ValidationError("cannot dismiss a record paired with itself")
        key = pair_key(id_a, id_b)
        self.backend.add(key)
        logger.info(f"Dismissed pair {key}")
        return key

    def is_dismissed(self, id_a, id_b) -> bool:
        return pair_key(id_a, id_b) in self.backend.get_all()

    def keys(self) -> set[str]:
        return self.backend.get_all()

    def count(self) -> int:
        return len(self.backend.get_all())

    def clear_all(self) -> int:
        removed = self.backend.clear()
        logger.info(f"Cleared {removed} dismissed pair(s)")
        return removed
