"""
Coach Tracker - Database Models

SQLAlchemy ORM models for the school/coach directory and the dedup engine's
own state (dismissed pairs, merge audit log).
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def generate_uuid() -> str:
    return str(uuid.uuid4())


class School(Base):
    """
    Organizations in the directory.
    Deduplicated by name (see dedup.matching).
    """

    __tablename__ = "schools"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    school: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    city: Mapped[Optional[str]] = mapped_column(Text)
    state: Mapped[Optional[str]] = mapped_column(String(20), index=True)
    type: Mapped[Optional[str]] = mapped_column(String(50))
    conference: Mapped[Optional[str]] = mapped_column(Text)
    division: Mapped[Optional[str]] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    coaches: Mapped[list["Coach"]] = relationship(back_populates="school")

    def __repr__(self) -> str:
        return f"<School(id={self.id}, name={self.school}, state={self.state})>"


class Coach(Base):
    """
    Contacts, each belonging to exactly one school.
    """

    __tablename__ = "coaches"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    school_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("schools.id"), nullable=False, index=True
    )
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    title: Mapped[Optional[str]] = mapped_column(Text)
    email: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(String(30))

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    school: Mapped["School"] = relationship(back_populates="coaches")
    attendance: Mapped[list["Attendance"]] = relationship(back_populates="coach")

    __table_args__ = (
        Index("ix_coaches_school_name", "school_id", "last_name", "first_name"),
    )

    def __repr__(self) -> str:
        return f"<Coach(id={self.id}, name={self.first_name} {self.last_name})>"


class Attendance(Base):
    """
    A coach seen at a game. Moved to the surviving coach on merge.
    """

    __tablename__ = "attendance"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    coach_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("coaches.id"), nullable=False, index=True
    )
    game_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    coach: Mapped["Coach"] = relationship(back_populates="attendance")

    def __repr__(self) -> str:
        return f"<Attendance(id={self.id}, coach={self.coach_id}, game={self.game_id})>"


class DismissedPair(Base):
    """
    Pairs an operator marked "not a duplicate". Never expires.
    """

    __tablename__ = "dismissed_pairs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    pair_key: Mapped[str] = mapped_column(String(80), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("kind", "pair_key", name="uq_dismissed_kind_pair"),
    )

    def __repr__(self) -> str:
        return f"<DismissedPair(kind={self.kind}, pair={self.pair_key})>"


class MergeLog(Base):
    """
    Audit trail for completed merges.
    """

    __tablename__ = "merge_log"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    kept_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    discarded_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    kept_label: Mapped[str] = mapped_column(Text, nullable=False)
    discarded_label: Mapped[str] = mapped_column(Text, nullable=False)
    fields_filled: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    dependents_moved: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<MergeLog({self.kind}: {self.discarded_label} -> {self.kept_label})>"
