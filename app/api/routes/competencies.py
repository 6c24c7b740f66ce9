"""
Competency Catalog API Routes

1. GET    /api/competencies                       - List / search the catalog
2. POST   /api/competencies                       - Create a competency (with embedding)
3. GET    /api/competencies/{id}                  - Get one competency
4. DELETE /api/competencies/{id}                  - Delete an unreferenced competency
5. GET    /api/competencies/{id}/similar          - Near-duplicates of a competency
6. POST   /api/competencies/embeddings/backfill   - Embed competencies missing a vector
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.ai_core.embedding import EmbeddingError, EmbeddingService
from app.ai_core.matching import IdentityResolver, SimilarityIndex, SimilarityIndexError
from app.api.dependencies import (
    get_catalog,
    get_embedding_service,
    get_identity_resolver,
    get_similarity_index,
)
from app.config import MAX_SIMILAR_OPTIONS, get_settings
from app.models.api_responses import BackfillResponse, CompetencyResponse
from app.models.competency import CompetencyType, SimilarOption
from app.services.catalog import (
    CompetencyCatalog,
    CompetencyConflictError,
    CompetencyInUseError,
    CompetencyNotFoundError,
)
from app.services.commit import create_competency_with_embedding
from app.services.embedding_backfill import backfill_embeddings

logger = logging.getLogger(__name__)
router = APIRouter()


class CreateCompetencyRequest(BaseModel):
    """Request model for creating a catalog entry."""

    name: str = Field(..., min_length=1, description="Competency name")
    type: CompetencyType = Field(..., description="Competency type")
    description: Optional[str] = Field(None, description="Competency description")
    is_draft: bool = Field(
        False, description="Drafts are never surfaced as similar options"
    )


@router.get("", response_model=List[CompetencyResponse])
async def list_competencies(
    type: Optional[CompetencyType] = Query(None, description="Filter by type"),
    search: Optional[str] = Query(None, description="Case-insensitive name search"),
    catalog: CompetencyCatalog = Depends(get_catalog),
):
    competencies = catalog.list(competency_type=type, search=search)
    return [CompetencyResponse.model_validate(c) for c in competencies]


@router.post("", response_model=CompetencyResponse, status_code=201)
async def create_competency(
    request: CreateCompetencyRequest,
    catalog: CompetencyCatalog = Depends(get_catalog),
    embedder: EmbeddingService = Depends(get_embedding_service),
    index: SimilarityIndex = Depends(get_similarity_index),
):
    """
    Create a competency and store the embedding of its name.

    Example request body:
    ```json
    {"name": "Statistical Modeling", "type": "KNOWLEDGE", "description": "..."}
    ```
    """
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Competency name must not be empty")

    try:
        competency = await create_competency_with_embedding(
            catalog,
            embedder,
            index,
            name=name,
            competency_type=request.type,
            description=request.description,
            is_draft=request.is_draft,
        )
    except CompetencyConflictError as e:
        return JSONResponse(
            status_code=409, content={"detail": str(e), "code": "name_conflict"}
        )
    except EmbeddingError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating competency {name!r}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create competency: {e}")

    return CompetencyResponse.model_validate(competency)


@router.post("/embeddings/backfill", response_model=BackfillResponse)
async def backfill_competency_embeddings(
    catalog: CompetencyCatalog = Depends(get_catalog),
    embedder: EmbeddingService = Depends(get_embedding_service),
    index: SimilarityIndex = Depends(get_similarity_index),
):
    """Generate embeddings for every competency that has none yet."""
    return await backfill_embeddings(catalog, embedder, index)


@router.get("/{competency_id}", response_model=CompetencyResponse)
async def get_competency(
    competency_id: str,
    catalog: CompetencyCatalog = Depends(get_catalog),
):
    try:
        return CompetencyResponse.model_validate(catalog.require(competency_id))
    except CompetencyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{competency_id}", status_code=204)
async def delete_competency(
    competency_id: str,
    catalog: CompetencyCatalog = Depends(get_catalog),
):
    try:
        catalog.delete(competency_id)
    except CompetencyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CompetencyInUseError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{competency_id}/similar", response_model=List[SimilarOption])
async def get_similar_competencies(
    competency_id: str,
    min_similarity: Optional[float] = Query(None, ge=-1.0, le=1.0),
    limit: int = Query(MAX_SIMILAR_OPTIONS, ge=1, le=50),
    catalog: CompetencyCatalog = Depends(get_catalog),
    embedder: EmbeddingService = Depends(get_embedding_service),
    index: SimilarityIndex = Depends(get_similarity_index),
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    """
    Existing competencies similar to the given one, most similar first.
    A missing embedding is generated and stored on the way.
    """
    try:
        competency = catalog.require(competency_id)
    except CompetencyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    threshold = get_settings().min_similarity if min_similarity is None else min_similarity

    try:
        stored = catalog.get_embedding(competency.id)
        if stored is not None:
            vector = stored.vector
        else:
            vector = await embedder.embed(competency.name)
            index.upsert(competency.id, vector)
            catalog.commit()

        return resolver.similar_options(
            vector, exclude_id=competency.id, min_similarity=threshold, limit=limit
        )
    except (EmbeddingError, SimilarityIndexError) as e:
        catalog.rollback()
        raise HTTPException(status_code=503, detail=str(e))
