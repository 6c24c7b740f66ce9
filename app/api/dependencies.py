"""
FastAPI dependencies.

Model clients are process-wide singletons; everything that touches the
database is built per request on top of the request's session.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.ai_core.embedding import EmbeddingService
from app.ai_core.extraction import CompetencyExtractor
from app.ai_core.matching import IdentityResolver, SimilarityIndex, SqlSimilarityIndex
from app.config import get_settings
from app.db.session import get_session
from app.services.catalog import CompetencyCatalog
from app.services.commit import CommitOperation


@lru_cache
def get_embedding_service() -> EmbeddingService:
    return EmbeddingService()


@lru_cache
def get_extractor() -> CompetencyExtractor:
    return CompetencyExtractor()


def build_similarity_index(catalog: CompetencyCatalog) -> SimilarityIndex:
    return SqlSimilarityIndex(catalog, embedding_model=get_settings().embedding_model)


def get_catalog(session: Session = Depends(get_session)) -> CompetencyCatalog:
    return CompetencyCatalog(session)


def get_similarity_index(
    catalog: CompetencyCatalog = Depends(get_catalog),
) -> SimilarityIndex:
    return build_similarity_index(catalog)


def get_identity_resolver(
    catalog: CompetencyCatalog = Depends(get_catalog),
    embedder: EmbeddingService = Depends(get_embedding_service),
    index: SimilarityIndex = Depends(get_similarity_index),
) -> IdentityResolver:
    return IdentityResolver(catalog, embedder, index)


def get_commit_operation(
    catalog: CompetencyCatalog = Depends(get_catalog),
    embedder: EmbeddingService = Depends(get_embedding_service),
    index: SimilarityIndex = Depends(get_similarity_index),
) -> CommitOperation:
    return CommitOperation(catalog, embedder, index)
