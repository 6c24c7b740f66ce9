"""
Similarity Index

Store of (competency id -> embedding vector) answering cosine nearest-neighbor
queries. The identity resolver only sees the SimilarityIndex contract, so the
storage behind it (in-memory dict, SQL table, vector database) can change
without touching resolution.

Ordering contract:
- similarity descending, ties broken by id ascending
- entries without a stored vector and `exclude_id` are never returned
- at most `limit` neighbors, all with similarity >= `min_similarity`
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from app.config import MAX_SIMILAR_OPTIONS, MIN_SIMILARITY

logger = logging.getLogger(__name__)


class SimilarityIndexError(Exception):
    """
    Raised when a similarity query or write fails.
    Per-candidate system error - the affected candidate is dropped.
    """

    pass


@dataclass(frozen=True)
class Neighbor:
    """A catalog entry close to the query vector."""

    id: str
    similarity: float


def rank_neighbors(
    query: Sequence[float],
    entries: Iterable[Tuple[str, Sequence[float]]],
    exclude_id: Optional[str] = None,
    min_similarity: float = MIN_SIMILARITY,
    limit: int = MAX_SIMILAR_OPTIONS,
) -> List[Neighbor]:
    """
    Brute-force cosine ranking of `entries` against `query`.

    Vectors with a different dimension than the query (e.g. produced by a
    previous embedding model) are skipped with a warning.
    """
    if limit <= 0:
        return []

    q = np.asarray(query, dtype=float)
    q_norm = np.linalg.norm(q)
    if q.ndim != 1 or q_norm == 0:
        return []

    ids: List[str] = []
    rows: List[np.ndarray] = []
    for entry_id, vector in entries:
        if entry_id == exclude_id or vector is None:
            continue
        v = np.asarray(vector, dtype=float)
        if v.shape != q.shape:
            logger.warning(
                f"Skipping embedding of {entry_id}: dimension {v.shape[0] if v.ndim else 0} "
                f"!= {q.shape[0]}"
            )
            continue
        ids.append(entry_id)
        rows.append(v)

    if not rows:
        return []

    matrix = np.vstack(rows)
    norms = np.linalg.norm(matrix, axis=1)
    norms[norms == 0] = np.inf  # zero vectors score 0
    scores = (matrix @ q) / (norms * q_norm)

    neighbors = [
        Neighbor(id=entry_id, similarity=min(float(score), 1.0))
        for entry_id, score in zip(ids, scores)
        if score >= min_similarity
    ]
    neighbors.sort(key=lambda n: (-n.similarity, n.id))
    return neighbors[:limit]


class SimilarityIndex(ABC):
    """Nearest-neighbor contract used by the identity resolver."""

    @abstractmethod
    def nearest_neighbors(
        self,
        vector: Sequence[float],
        exclude_id: Optional[str] = None,
        min_similarity: float = MIN_SIMILARITY,
        limit: int = MAX_SIMILAR_OPTIONS,
    ) -> List[Neighbor]:
        ...

    @abstractmethod
    def upsert(self, competency_id: str, vector: Sequence[float]) -> None:
        ...

    @abstractmethod
    def has_vector(self, competency_id: str) -> bool:
        ...


class InMemorySimilarityIndex(SimilarityIndex):
    """Dict-backed index for small catalogs and tests."""

    def __init__(self, vectors: Optional[Dict[str, Sequence[float]]] = None):
        self._vectors: Dict[str, List[float]] = {}
        for competency_id, vector in (vectors or {}).items():
            self.upsert(competency_id, vector)

    def __len__(self) -> int:
        return len(self._vectors)

    def nearest_neighbors(
        self,
        vector: Sequence[float],
        exclude_id: Optional[str] = None,
        min_similarity: float = MIN_SIMILARITY,
        limit: int = MAX_SIMILAR_OPTIONS,
    ) -> List[Neighbor]:
        return rank_neighbors(
            vector,
            self._vectors.items(),
            exclude_id=exclude_id,
            min_similarity=min_similarity,
            limit=limit,
        )

    def upsert(self, competency_id: str, vector: Sequence[float]) -> None:
        self._vectors[competency_id] = [float(value) for value in vector]

    def remove(self, competency_id: str) -> None:
        self._vectors.pop(competency_id, None)

    def has_vector(self, competency_id: str) -> bool:
        return competency_id in self._vectors


class SqlSimilarityIndex(SimilarityIndex):
    """
    Index over the `competency_embeddings` table.

    Vectors are read per query from non-draft competencies and ranked with
    numpy. Writes go through the catalog and are flushed, not committed, so
    they join the caller's transaction.
    """

    def __init__(self, catalog, embedding_model: Optional[str] = None):
        self.catalog = catalog
        self.embedding_model = embedding_model

    def nearest_neighbors(
        self,
        vector: Sequence[float],
        exclude_id: Optional[str] = None,
        min_similarity: float = MIN_SIMILARITY,
        limit: int = MAX_SIMILAR_OPTIONS,
    ) -> List[Neighbor]:
        try:
            entries = self.catalog.embedding_vectors(include_drafts=False)
        except Exception as e:
            logger.error(f"Error loading embeddings for similarity search: {e}", exc_info=True)
            raise SimilarityIndexError(f"Similarity query failed: {e}") from e

        return rank_neighbors(
            vector,
            entries,
            exclude_id=exclude_id,
            min_similarity=min_similarity,
            limit=limit,
        )

    def upsert(self, competency_id: str, vector: Sequence[float]) -> None:
        try:
            self.catalog.store_embedding(
                competency_id, list(vector), model=self.embedding_model
            )
        except Exception as e:
            logger.error(f"Error storing embedding for {competency_id}: {e}", exc_info=True)
            raise SimilarityIndexError(
                f"Failed to store embedding for {competency_id}: {e}"
            ) from e

    def has_vector(self, competency_id: str) -> bool:
        return self.catalog.has_embedding(competency_id)
