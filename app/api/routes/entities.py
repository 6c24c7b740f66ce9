"""
Entity Competency API Routes

People and courses are owned by the surrounding application; these routes
only attach competencies to them.

1. POST /api/{entity_kind}                                      - Register an entity
2. GET  /api/{entity_kind}/{entity_id}/competencies             - Linked competencies
3. POST /api/{entity_kind}/{entity_id}/competencies/commit      - Commit one candidate

entity_kind is `people` or `courses`.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.ai_core.embedding import EmbeddingError
from app.ai_core.matching import SimilarityIndexError
from app.api.dependencies import get_catalog, get_commit_operation
from app.models.api_responses import (
    CommitResponse,
    CompetencyResponse,
    EntityCompetencyResponse,
)
from app.models.competency import CommitRequest, EntityKind
from app.services.catalog import (
    CompetencyCatalog,
    CompetencyConflictError,
    CompetencyNotFoundError,
    EntityConflictError,
    EntityNotFoundError,
    LinkConflictError,
)
from app.services.commit import CommitOperation, DraftValidationError, LinkCreationError

logger = logging.getLogger(__name__)
router = APIRouter()


class CreateEntityRequest(BaseModel):
    """Request model for registering a person or course."""

    name: str = Field(..., min_length=1)
    id: Optional[str] = Field(None, description="Id used by the owning application")


class EntityResponse(BaseModel):
    entity_kind: EntityKind
    id: str
    name: str


@router.post("/{entity_kind}", response_model=EntityResponse, status_code=201)
async def create_entity(
    entity_kind: EntityKind,
    request: CreateEntityRequest,
    catalog: CompetencyCatalog = Depends(get_catalog),
):
    try:
        entity = catalog.add_entity(entity_kind, request.name, entity_id=request.id)
    except EntityConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return EntityResponse(entity_kind=entity_kind, id=entity.id, name=entity.name)


@router.get(
    "/{entity_kind}/{entity_id}/competencies",
    response_model=List[EntityCompetencyResponse],
)
async def list_entity_competencies(
    entity_kind: EntityKind,
    entity_id: str,
    catalog: CompetencyCatalog = Depends(get_catalog),
):
    """
    Competencies already linked to a person or course.

    Clients use this list both as the extraction exclusion set and to mark
    candidates as already added.
    """
    try:
        catalog.require_entity(entity_kind, entity_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return [
        EntityCompetencyResponse(
            entity_kind=entity_kind,
            entity_id=entity_id,
            competency=CompetencyResponse.model_validate(link.competency),
            proficiency=link.proficiency,
        )
        for link in catalog.linked_competencies(entity_kind, entity_id)
    ]


@router.post(
    "/{entity_kind}/{entity_id}/competencies/commit",
    response_model=CommitResponse,
    status_code=201,
)
async def commit_candidate(
    entity_kind: EntityKind,
    entity_id: str,
    request: CommitRequest,
    operation: CommitOperation = Depends(get_commit_operation),
):
    """
    Commit one reconciled candidate to a person or course.

    Example request body (new competency):
    ```json
    {
        "candidate_id": "cand-3",
        "selected_option_id": "+5b0c...",
        "draft": {"name": "Statistical Analysis", "type": "SKILL", "description": "..."},
        "proficiency": "ADVANCED"
    }
    ```

    Conflicts return 409 with a `code`:
    - `already_added`: the competency is already linked (treat as done)
    - `name_conflict`: the draft's name/type was taken meanwhile (re-resolve)
    """
    logger.info(
        f"Commit request: {entity_kind.value}/{entity_id}, "
        f"candidate={request.candidate_id}, option={request.selected_option_id}"
    )

    try:
        result = await operation.commit(entity_kind, entity_id, request)
    except (EntityNotFoundError, CompetencyNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DraftValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except LinkConflictError as e:
        return JSONResponse(
            status_code=409,
            content={
                "detail": str(e),
                "code": "already_added",
                "competency_id": e.competency_id,
            },
        )
    except CompetencyConflictError as e:
        return JSONResponse(
            status_code=409,
            content={"detail": str(e), "code": "name_conflict"},
        )
    except (EmbeddingError, SimilarityIndexError) as e:
        raise HTTPException(status_code=503, detail=str(e))
    except LinkCreationError as e:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(e),
                "code": "link_failed",
                "competency_id": e.competency_id,
            },
        )
    except Exception as e:
        logger.error(f"Error committing candidate {request.candidate_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to commit candidate: {e}")

    return result.to_response()
