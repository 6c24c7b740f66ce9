"""
Competency Identity Resolver

Decides, for one extracted competency, whether it is an existing catalog entry
or a new one, and which existing entries look like near-duplicates:

1. Exact match on (case-insensitive name, type) -> reuse the existing id, no
   similar options. A missing embedding on the match is backfilled.
2. Otherwise embed the name, mint a provisional id and ask the similarity
   index for up to `max_similar_options` neighbors above `min_similarity`.

Resolution is read-only apart from that embedding backfill, which is
idempotent.
"""

import logging
from typing import List, Optional

from app.ai_core.embedding import EmbeddingService
from app.ai_core.matching.similarity_index import Neighbor, SimilarityIndex
from app.config import get_settings
from app.models.competency import Candidate, SimilarOption, new_provisional_id

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Resolves extracted competencies against the catalog.
    """

    def __init__(
        self,
        catalog,
        embedder: EmbeddingService,
        index: SimilarityIndex,
        min_similarity: Optional[float] = None,
        max_similar_options: Optional[int] = None,
    ):
        """
        Args:
            catalog: CompetencyCatalog bound to the current session
            embedder: Embedding service for competency names
            index: Similarity index over stored competency embeddings
            min_similarity: Threshold for similar options (default from settings)
            max_similar_options: Cap on similar options (default from settings)
        """
        config = get_settings()
        self.catalog = catalog
        self.embedder = embedder
        self.index = index
        self.min_similarity = (
            config.min_similarity if min_similarity is None else min_similarity
        )
        self.max_similar_options = (
            config.max_similar_options
            if max_similar_options is None
            else max_similar_options
        )

    async def resolve(self, item) -> Candidate:
        """
        Resolve one extracted competency into a candidate.

        Args:
            item: Object with name, type, description and suggested_proficiency
                  (ExtractedCompetency or ResolveRequest)

        Returns:
            Candidate whose id is the existing competency id or a provisional id

        Raises:
            EmbeddingError: If the name cannot be embedded
            SimilarityIndexError: If the similarity query fails
        """
        existing = self.catalog.find_by_name_and_type(item.name, item.type)

        if existing is not None:
            logger.info(f"Exact match for {item.name!r} ({item.type.value}): {existing.id}")
            await self._ensure_embedding(existing)
            return Candidate(
                id=existing.id,
                name=existing.name,
                type=existing.type,
                description=existing.description or item.description,
                suggested_proficiency=item.suggested_proficiency,
                similar=[],
            )

        vector = await self.embedder.embed(item.name)
        provisional_id = new_provisional_id()

        similar = self.similar_options(vector, exclude_id=provisional_id)

        logger.info(
            f"New competency {item.name!r} ({item.type.value}) -> {provisional_id}, "
            f"{len(similar)} similar option(s)"
        )
        return Candidate(
            id=provisional_id,
            name=item.name,
            type=item.type,
            description=item.description,
            suggested_proficiency=item.suggested_proficiency,
            similar=similar,
        )

    def similar_options(
        self,
        vector: List[float],
        exclude_id: Optional[str] = None,
        min_similarity: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[SimilarOption]:
        """
        Up to `limit` catalog competencies above `min_similarity`, most similar first.

        Neighbors that hydrate drops (drafts, deleted rows) do not use up the
        limit: the index is queried again with a larger limit until enough
        options are found or the index has no more neighbors.
        """
        min_similarity = self.min_similarity if min_similarity is None else min_similarity
        limit = self.max_similar_options if limit is None else limit
        if limit <= 0:
            return []

        fetch = limit
        while True:
            neighbors = self.index.nearest_neighbors(
                vector,
                exclude_id=exclude_id,
                min_similarity=min_similarity,
                limit=fetch,
            )
            options = self.hydrate(neighbors)
            if len(options) >= limit or len(neighbors) < fetch:
                return options[:limit]
            fetch *= 2

    def hydrate(self, neighbors: List[Neighbor]) -> List[SimilarOption]:
        """Attach catalog fields to neighbors, keeping the index order."""
        if not neighbors:
            return []

        competencies = self.catalog.get_many(n.id for n in neighbors)
        options = []
        for neighbor in neighbors:
            competency = competencies.get(neighbor.id)
            # Deleted since the vector was read, or still a draft
            if competency is None or competency.is_draft:
                continue
            options.append(
                SimilarOption(
                    id=competency.id,
                    name=competency.name,
                    type=competency.type,
                    description=competency.description,
                    similarity=max(0.0, min(neighbor.similarity, 1.0)),
                )
            )
        return options

    async def _ensure_embedding(self, competency) -> None:
        """Backfill the embedding of an exact match so it shows up in future queries."""
        if self.index.has_vector(competency.id):
            return

        try:
            vector = await self.embedder.embed(competency.name)
            self.index.upsert(competency.id, vector)
            self.catalog.commit()
            logger.info(f"Backfilled embedding for competency {competency.id}")
        except Exception as e:
            # Repair only; the exact match is still valid
            self.catalog.rollback()
            logger.warning(
                f"Could not backfill embedding for competency {competency.id}: {e}"
            )
