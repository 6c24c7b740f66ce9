from app.ai_core.matching.similarity_index import (
    InMemorySimilarityIndex,
    Neighbor,
    SimilarityIndex,
    SimilarityIndexError,
    SqlSimilarityIndex,
    rank_neighbors,
)
from app.ai_core.matching.identity_resolver import IdentityResolver

__all__ = [
    "IdentityResolver",
    "InMemorySimilarityIndex",
    "Neighbor",
    "SimilarityIndex",
    "SimilarityIndexError",
    "SqlSimilarityIndex",
    "rank_neighbors",
]
