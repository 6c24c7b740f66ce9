"""
Competency Catalog Service

Repository over the competency catalog, its embeddings and the links between
competencies and people/courses. The (name, type) and (entity, competency)
uniqueness constraints are the final arbiter for concurrent writers; this
module maps their violations to conflict errors.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import (
    Competency,
    CompetencyEmbedding,
    Course,
    CourseCompetency,
    Person,
    PersonCompetency,
)
from app.models.competency import CompetencyType, EntityKind, Proficiency
from app.utils import normalize_name

logger = logging.getLogger(__name__)


# Custom Exceptions


class CompetencyNotFoundError(Exception):
    """Raised when a competency id is not in the catalog (404)."""

    pass


class EntityNotFoundError(Exception):
    """Raised when the target person/course does not exist (404)."""

    pass


class CompetencyConflictError(Exception):
    """
    Raised when a competency with the same (name, type) already exists (409).
    Callers must re-resolve the identity instead of resubmitting the draft.
    """

    def __init__(self, name: str, competency_type: CompetencyType):
        self.name = name
        self.type = CompetencyType(competency_type)
        super().__init__(
            f'A {self.type.value} competency with the name "{name}" already exists'
        )


class LinkConflictError(Exception):
    """
    Raised when the competency is already linked to the entity (409).
    User-facing as "already added"; not something to retry.
    """

    def __init__(self, competency_id: str, message: Optional[str] = None):
        self.competency_id = competency_id
        super().__init__(message or "Competency already added to this entity")


class EntityConflictError(Exception):
    """Raised when registering a person/course under an id that is taken (409)."""

    pass


class CompetencyInUseError(Exception):
    """Raised when deleting a competency that is linked to people or courses (409)."""

    pass


_ENTITY_TABLES = {
    EntityKind.PERSON: (Person, PersonCompetency, "person_id"),
    EntityKind.COURSE: (Course, CourseCompetency, "course_id"),
}


class CompetencyCatalog:
    """
    Catalog access bound to one SQLAlchemy session.

    Write methods flush; they commit only when `commit=True` so callers can
    group several writes into one transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- transaction -------------------------------------------------------

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # --- competencies ------------------------------------------------------

    def find_by_name_and_type(
        self, name: str, competency_type: CompetencyType
    ) -> Optional[Competency]:
        """Case-insensitive name match, exact type match."""
        key = normalize_name(name)
        if not key:
            return None
        stmt = select(Competency).where(
            Competency.name_key == key,
            Competency.type == CompetencyType(competency_type),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def get(self, competency_id: str) -> Optional[Competency]:
        return self.session.get(Competency, competency_id)

    def require(self, competency_id: str) -> Competency:
        competency = self.get(competency_id)
        if competency is None:
            raise CompetencyNotFoundError(f"Competency not found: {competency_id}")
        return competency

    def get_many(self, competency_ids: Iterable[str]) -> Dict[str, Competency]:
        ids = list(dict.fromkeys(competency_ids))
        if not ids:
            return {}
        stmt = select(Competency).where(Competency.id.in_(ids))
        return {c.id: c for c in self.session.execute(stmt).scalars()}

    def list(
        self,
        competency_type: Optional[CompetencyType] = None,
        search: Optional[str] = None,
        include_drafts: bool = True,
    ) -> List[Competency]:
        stmt = select(Competency)
        if competency_type is not None:
            stmt = stmt.where(Competency.type == CompetencyType(competency_type))
        if search:
            stmt = stmt.where(Competency.name_key.contains(normalize_name(search)))
        if not include_drafts:
            stmt = stmt.where(Competency.is_draft.is_(False))
        stmt = stmt.order_by(Competency.name_key, Competency.type)
        return list(self.session.execute(stmt).scalars())

    def create(
        self,
        name: str,
        competency_type: CompetencyType,
        description: Optional[str] = None,
        is_draft: bool = False,
        commit: bool = True,
    ) -> Competency:
        """
        Add a competency to the catalog.

        Raises:
            CompetencyConflictError: If (name, type) already exists, either
                                     found up front or reported by the
                                     uniqueness constraint
        """
        name = " ".join((name or "").split())
        competency_type = CompetencyType(competency_type)
        if not name:
            raise ValueError("Competency name must not be empty")

        if self.find_by_name_and_type(name, competency_type) is not None:
            raise CompetencyConflictError(name, competency_type)

        competency = Competency(
            name=name,
            name_key=normalize_name(name),
            type=competency_type,
            description=(description or "").strip() or None,
            is_draft=is_draft,
        )
        self.session.add(competency)
        try:
            self.session.flush()
        except IntegrityError as e:
            # Lost a race against a concurrent creator
            self.session.rollback()
            logger.info(f"Competency creation conflict for {name!r} ({competency_type.value})")
            raise CompetencyConflictError(name, competency_type) from e

        if commit:
            self.session.commit()

        logger.info(f"Created competency {competency.id}: {name} ({competency_type.value})")
        return competency

    def delete(self, competency_id: str) -> None:
        """Delete a competency that is not referenced by any link."""
        competency = self.require(competency_id)
        for _, link_model, _ in _ENTITY_TABLES.values():
            stmt = select(link_model.id).where(link_model.competency_id == competency_id).limit(1)
            if self.session.execute(stmt).first() is not None:
                raise CompetencyInUseError(
                    "Cannot delete competency that is assigned to people or courses"
                )
        self.session.delete(competency)
        self.session.commit()
        logger.info(f"Deleted competency {competency_id}")

    # --- embeddings --------------------------------------------------------

    def has_embedding(self, competency_id: str) -> bool:
        stmt = select(CompetencyEmbedding.id).where(
            CompetencyEmbedding.competency_id == competency_id
        )
        return self.session.execute(stmt).first() is not None

    def get_embedding(self, competency_id: str) -> Optional[CompetencyEmbedding]:
        stmt = select(CompetencyEmbedding).where(
            CompetencyEmbedding.competency_id == competency_id
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def store_embedding(
        self,
        competency_id: str,
        vector: List[float],
        model: Optional[str] = None,
        commit: bool = False,
    ) -> CompetencyEmbedding:
        """Insert or replace the vector of a competency."""
        embedding = self.get_embedding(competency_id)
        if embedding is None:
            embedding = CompetencyEmbedding(competency_id=competency_id)
            self.session.add(embedding)

        embedding.vector = [float(value) for value in vector]
        embedding.dimensions = len(vector)
        embedding.model = model
        self.session.flush()

        if commit:
            self.session.commit()
        return embedding

    def embedding_vectors(self, include_drafts: bool = False) -> List[Tuple[str, List[float]]]:
        """All stored (competency id, vector) pairs."""
        stmt = select(CompetencyEmbedding.competency_id, CompetencyEmbedding.vector).join(
            Competency, Competency.id == CompetencyEmbedding.competency_id
        )
        if not include_drafts:
            stmt = stmt.where(Competency.is_draft.is_(False))
        return [(row[0], row[1]) for row in self.session.execute(stmt)]

    def competencies_missing_embeddings(self) -> List[Competency]:
        stmt = (
            select(Competency)
            .outerjoin(CompetencyEmbedding, CompetencyEmbedding.competency_id == Competency.id)
            .where(CompetencyEmbedding.id.is_(None))
            .order_by(Competency.name_key)
        )
        return list(self.session.execute(stmt).scalars())

    # --- entities & links --------------------------------------------------

    def add_entity(self, entity_kind: EntityKind, name: str, entity_id: Optional[str] = None):
        entity_model, _, _ = _ENTITY_TABLES[EntityKind(entity_kind)]
        if entity_id and self.session.get(entity_model, entity_id) is not None:
            raise EntityConflictError(
                f"{EntityKind(entity_kind).value} entity already exists: {entity_id}"
            )

        entity = entity_model(name=name)
        if entity_id:
            entity.id = entity_id
        self.session.add(entity)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise EntityConflictError(
                f"{EntityKind(entity_kind).value} entity already exists: {entity_id}"
            ) from e
        return entity

    def require_entity(self, entity_kind: EntityKind, entity_id: str):
        entity_model, _, _ = _ENTITY_TABLES[EntityKind(entity_kind)]
        entity = self.session.get(entity_model, entity_id)
        if entity is None:
            raise EntityNotFoundError(
                f"{EntityKind(entity_kind).value} entity not found: {entity_id}"
            )
        return entity

    def get_link(self, entity_kind: EntityKind, entity_id: str, competency_id: str):
        _, link_model, entity_column = _ENTITY_TABLES[EntityKind(entity_kind)]
        stmt = select(link_model).where(
            getattr(link_model, entity_column) == entity_id,
            link_model.competency_id == competency_id,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def link(
        self,
        entity_kind: EntityKind,
        entity_id: str,
        competency_id: str,
        proficiency: Optional[Proficiency] = None,
    ):
        """
        Link a competency to a person or course.

        Raises:
            LinkConflictError: If the pair is already linked
        """
        _, link_model, entity_column = _ENTITY_TABLES[EntityKind(entity_kind)]

        if self.get_link(entity_kind, entity_id, competency_id) is not None:
            raise LinkConflictError(competency_id)

        link = link_model(
            competency_id=competency_id,
            proficiency=Proficiency(proficiency) if proficiency else None,
        )
        setattr(link, entity_column, entity_id)
        self.session.add(link)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            # Only the pair's uniqueness constraint means "already added";
            # anything else (e.g. a foreign key) is a real failure
            if self.get_link(entity_kind, entity_id, competency_id) is not None:
                raise LinkConflictError(competency_id) from e
            raise

        logger.info(
            f"Linked competency {competency_id} to {EntityKind(entity_kind).value}/{entity_id} "
            f"(proficiency={proficiency.value if proficiency else None})"
        )
        return link

    def linked_competencies(self, entity_kind: EntityKind, entity_id: str) -> list:
        _, link_model, entity_column = _ENTITY_TABLES[EntityKind(entity_kind)]
        stmt = (
            select(link_model)
            .where(getattr(link_model, entity_column) == entity_id)
            .order_by(link_model.created_at, link_model.id)
        )
        return list(self.session.execute(stmt).scalars())

    def linked_competency_ids(self, entity_kind: EntityKind, entity_id: str) -> Set[str]:
        return {
            link.competency_id for link in self.linked_competencies(entity_kind, entity_id)
        }
