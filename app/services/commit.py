"""
Commit Operation

Materializes the final choice for one candidate and links it to a person or
course:

- provisional identity -> create the competency from the draft and store its
  embedding (one transaction), then link it
- existing identity    -> link it as-is, the draft is ignored

The link is written in its own transaction. If it fails after the competency
was created, the competency stays in the catalog and the error carries its id
so a retry only repeats the link step.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.ai_core.embedding import EmbeddingService
from app.ai_core.matching import SimilarityIndex
from app.models.api_responses import CommitResponse
from app.models.competency import (
    CommitRequest,
    CompetencyType,
    EntityKind,
    ExistingIdentity,
    Proficiency,
    supports_proficiency,
)
from app.services.catalog import (
    CompetencyCatalog,
    CompetencyConflictError,
    LinkConflictError,
)

logger = logging.getLogger(__name__)


# Custom Exceptions


class DraftValidationError(Exception):
    """
    Raised when a commit request is invalid (422).
    Missing draft name/type, or a proficiency on a type that does not support
    one. Nothing has been written when this is raised.
    """

    pass


class LinkCreationError(Exception):
    """
    Raised when linking fails for a reason other than a duplicate link (500).
    `competency_id` is the (possibly just created) competency to retry with.
    """

    def __init__(self, competency_id: str, message: str):
        self.competency_id = competency_id
        super().__init__(message)


@dataclass
class CommitResult:
    candidate_id: str
    competency_id: str
    created_competency: bool
    proficiency: Optional[Proficiency] = None

    def to_response(self) -> CommitResponse:
        return CommitResponse(
            status="added",
            candidate_id=self.candidate_id,
            competency_id=self.competency_id,
            created_competency=self.created_competency,
            proficiency=self.proficiency,
        )


def validate_proficiency(
    competency_type: CompetencyType, proficiency: Optional[Proficiency]
) -> None:
    if proficiency is not None and not supports_proficiency(competency_type):
        raise DraftValidationError(
            f"Proficiency is not supported for {CompetencyType(competency_type).value} competencies"
        )


async def create_competency_with_embedding(
    catalog: CompetencyCatalog,
    embedder: EmbeddingService,
    index: SimilarityIndex,
    name: str,
    competency_type: CompetencyType,
    description: Optional[str] = None,
    is_draft: bool = False,
):
    """
    Create a competency together with its embedding, all or nothing.

    The name is embedded before anything is written, so an embedding
    failure leaves the catalog untouched.

    Raises:
        CompetencyConflictError: (name, type) already exists
        DraftValidationError: The name is blank
        EmbeddingError: The name could not be embedded
    """
    # Stored and embedded name must be the same string
    name = " ".join((name or "").split())
    if not name:
        raise DraftValidationError("A name is required to create a new competency")

    if catalog.find_by_name_and_type(name, competency_type) is not None:
        raise CompetencyConflictError(name, competency_type)

    vector = await embedder.embed(name)
    try:
        competency = catalog.create(
            name=name,
            competency_type=competency_type,
            description=description,
            is_draft=is_draft,
            commit=False,
        )
        index.upsert(competency.id, vector)
        catalog.commit()
    except CompetencyConflictError:
        raise
    except Exception:
        catalog.rollback()
        raise
    return competency


class CommitOperation:
    """
    Commits reconciled candidates to the catalog and entity links.
    """

    def __init__(
        self,
        catalog: CompetencyCatalog,
        embedder: EmbeddingService,
        index: SimilarityIndex,
    ):
        self.catalog = catalog
        self.embedder = embedder
        self.index = index

    async def commit(
        self, entity_kind: EntityKind, entity_id: str, request: CommitRequest
    ) -> CommitResult:
        """
        Commit one candidate.

        Args:
            entity_kind: people or courses
            entity_id: Target entity id
            request: Candidate id, selected option, draft and proficiency

        Returns:
            CommitResult with the competency id the candidate was linked as

        Raises:
            EntityNotFoundError: Unknown person/course
            CompetencyNotFoundError: Selected existing competency does not exist
            DraftValidationError: Invalid draft or proficiency
            CompetencyConflictError: Draft name/type already in the catalog
            LinkConflictError: Competency already linked to the entity
            EmbeddingError: Embedding of a new competency failed (nothing written)
            LinkCreationError: Link failed after the competency was resolved
        """
        entity_kind = EntityKind(entity_kind)
        self.catalog.require_entity(entity_kind, entity_id)

        identity = request.identity()
        created = False

        if isinstance(identity, ExistingIdentity):
            competency = self.catalog.require(identity.id)
            validate_proficiency(competency.type, request.proficiency)

            # Defensive re-check before writing; the unique constraint still decides
            if self.catalog.get_link(entity_kind, entity_id, competency.id) is not None:
                raise LinkConflictError(competency.id)
        else:
            draft = identity.draft
            if draft is None or not draft.name:
                raise DraftValidationError("A name is required to create a new competency")
            if draft.type is None:
                raise DraftValidationError("A type is required to create a new competency")
            validate_proficiency(draft.type, request.proficiency)

            competency = await create_competency_with_embedding(
                self.catalog,
                self.embedder,
                self.index,
                name=draft.name,
                competency_type=draft.type,
                description=draft.description,
            )
            created = True

        try:
            self.catalog.link(entity_kind, entity_id, competency.id, request.proficiency)
        except LinkConflictError:
            raise
        except Exception as e:
            self.catalog.rollback()
            logger.error(
                f"Error linking competency {competency.id} to {entity_kind.value}/{entity_id}: {e}",
                exc_info=True,
            )
            raise LinkCreationError(
                competency.id, f"Failed to link competency: {e}"
            ) from e

        logger.info(
            f"Committed candidate {request.candidate_id} as {competency.id} "
            f"({'created' if created else 'existing'}) to {entity_kind.value}/{entity_id}"
        )
        return CommitResult(
            candidate_id=request.candidate_id,
            competency_id=competency.id,
            created_competency=created,
            proficiency=request.proficiency,
        )
