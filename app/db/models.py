"""
SQLAlchemy ORM models.
- Competency / CompetencyEmbedding: the catalog and its 1:1 name vectors
- Person / Course: minimal rows for the entities competencies are attached to
- PersonCompetency / CourseCompetency: entity links, unique per (entity, competency)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.competency import CompetencyType, Proficiency
from .session import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class Competency(Base):
    __tablename__ = "competencies"
    __table_args__ = (
        UniqueConstraint("name_key", "type", name="uq_competencies_name_key_type"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # case-folded name; uniqueness is case-insensitive per type
    name_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[CompetencyType] = mapped_column(
        SAEnum(CompetencyType, native_enum=False, length=32), nullable=False
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    embedding: Mapped[Optional["CompetencyEmbedding"]] = relationship(
        back_populates="competency",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def __repr__(self) -> str:
        return f"<Competency id={self.id} name={self.name!r} type={self.type.value}>"


class CompetencyEmbedding(Base):
    __tablename__ = "competency_embeddings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    competency_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("competencies.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    vector: Mapped[List[float]] = mapped_column(JSON, nullable=False)
    dimensions: Mapped[int] = mapped_column(Integer, nullable=False)
    model: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    competency: Mapped[Competency] = relationship(back_populates="embedding")

    def __repr__(self) -> str:
        return f"<CompetencyEmbedding competency_id={self.competency_id} dims={self.dimensions}>"


class Person(Base):
    __tablename__ = "people"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class PersonCompetency(Base):
    __tablename__ = "person_competencies"
    __table_args__ = (
        UniqueConstraint("person_id", "competency_id", name="uq_person_competencies_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    person_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True
    )
    competency_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("competencies.id", ondelete="RESTRICT"), nullable=False
    )
    proficiency: Mapped[Optional[Proficiency]] = mapped_column(
        SAEnum(Proficiency, native_enum=False, length=16), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    competency: Mapped[Competency] = relationship(lazy="joined")


class CourseCompetency(Base):
    __tablename__ = "course_competencies"
    __table_args__ = (
        UniqueConstraint("course_id", "competency_id", name="uq_course_competencies_pair"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    competency_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("competencies.id", ondelete="RESTRICT"), nullable=False
    )
    proficiency: Mapped[Optional[Proficiency]] = mapped_column(
        SAEnum(Proficiency, native_enum=False, length=16), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    competency: Mapped[Competency] = relationship(lazy="joined")
