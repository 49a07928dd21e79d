"""
Plain record types passed between the record store and the engine.

These are detached snapshots of database rows, so they can be pickled into
worker processes and compared without touching a session.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class RecordKind(Enum):
    ORGANIZATION = "organization"   # schools
    CONTACT = "contact"             # coaches
    ATTENDANCE = "attendance"       # coach attendance at games


@dataclass(frozen=True)
class OrganizationRecord:
    id: str
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    type: Optional[str] = None
    conference: Optional[str] = None
    division: Optional[str] = None

    kind = RecordKind.ORGANIZATION


@dataclass(frozen=True)
class ContactRecord:
    id: str
    first_name: str
    last_name: str
    organization_id: str
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    kind = RecordKind.CONTACT

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AttendanceRecord:
    id: str
    contact_id: str
    game_id: Optional[str] = None

    kind = RecordKind.ATTENDANCE


Record = Union[OrganizationRecord, ContactRecord, AttendanceRecord]


def is_blank(value) -> bool:
    """True for None and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False
