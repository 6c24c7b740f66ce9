"""
Competency Extraction API Routes

1. POST /api/extraction/stream - Extract and resolve competencies (NDJSON stream)
2. POST /api/extraction/resolve - Re-resolve a single candidate
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.ai_core.embedding import EmbeddingError, EmbeddingService
from app.ai_core.extraction import CompetencyExtractor
from app.ai_core.matching import IdentityResolver, SimilarityIndexError
from app.api.dependencies import (
    build_similarity_index,
    get_embedding_service,
    get_extractor,
    get_identity_resolver,
)
from app.db.session import session_scope
from app.models.api_responses import ExtractionEvent
from app.models.competency import Candidate, ExtractionRequest, ResolveRequest
from app.services.catalog import CompetencyCatalog
from app.services.extraction_orchestrator import ExtractionOrchestrator
from app.utils import encode_ndjson

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/stream")
async def stream_extraction(
    request: ExtractionRequest,
    extractor: CompetencyExtractor = Depends(get_extractor),
    embedder: EmbeddingService = Depends(get_embedding_service),
):
    """
    Extract competencies from content and resolve them against the catalog.

    The response is newline-delimited JSON: zero or more `info` events
    followed by exactly one `result` or `error` event.

    Example request body:
    ```json
    {
        "content": "Senior data analyst, 6 years of Python and SQL ...",
        "context_hint": "This is a CV",
        "entity_name": "Jane Doe",
        "exclude_competencies": [{"id": "3f2a...", "name": "SQL", "type": "TECH_TOOL"}]
    }
    ```

    Example stream:
    ```
    {"type": "info", "message": "Starting competency extraction..."}
    {"type": "info", "message": "Processing 1/7: Python"}
    ...
    {"type": "result", "extracted_competencies": [...], "entity_name": "Jane Doe"}
    ```
    """
    logger.info(
        f"Extraction request: content_length={len(request.content)}, "
        f"entity={request.entity_name!r}, excluded={len(request.exclude_competencies)}"
    )

    async def event_stream():
        # The session lives as long as the stream, not the request handler
        with session_scope() as session:
            catalog = CompetencyCatalog(session)
            resolver = IdentityResolver(catalog, embedder, build_similarity_index(catalog))
            events = ExtractionOrchestrator(extractor, resolver).extract(request)
            try:
                async for event in events:
                    yield encode_ndjson(event)
            except Exception as e:
                logger.error(f"Extraction stream failed: {e}", exc_info=True)
                yield encode_ndjson(ExtractionEvent.error(f"Extraction failed: {e}"))
            finally:
                await events.aclose()

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")


@router.post("/resolve", response_model=Candidate)
async def resolve_candidate(
    request: ResolveRequest,
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    """
    Resolve one candidate again, e.g. after its name was taken by a
    concurrent commit. The winner of that race is now found as an exact match.
    """
    if not request.name.strip():
        raise HTTPException(status_code=422, detail="Competency name must not be empty")

    try:
        return await resolver.resolve(request)
    except (EmbeddingError, SimilarityIndexError) as e:
        logger.error(f"Error resolving candidate {request.name!r}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error resolving candidate {request.name!r}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to resolve candidate: {e}")
