"""
Embedding backfill job.

Embeds every catalog entry that has no stored vector yet, e.g. competencies
imported in bulk or created before the embedding model was configured.
Failures are counted and skipped; each stored vector is committed on its own.
"""

import logging

from app.ai_core.embedding import EmbeddingService
from app.ai_core.matching import SimilarityIndex
from app.models.api_responses import BackfillResponse
from app.services.catalog import CompetencyCatalog

logger = logging.getLogger(__name__)


async def backfill_embeddings(
    catalog: CompetencyCatalog,
    embedder: EmbeddingService,
    index: SimilarityIndex,
) -> BackfillResponse:
    missing = catalog.competencies_missing_embeddings()
    result = BackfillResponse(total=len(missing))
    logger.info(f"Found {len(missing)} competencies without embeddings")

    for competency in missing:
        try:
            vector = await embedder.embed(competency.name)
            index.upsert(competency.id, vector)
            catalog.commit()
            result.processed += 1
        except Exception as e:
            catalog.rollback()
            result.failed += 1
            result.failed_ids.append(competency.id)
            logger.warning(f"Failed to embed competency {competency.id} ({competency.name}): {e}")

    logger.info(
        f"Embedding backfill done: {result.processed} processed, {result.failed} failed"
    )
    return result
