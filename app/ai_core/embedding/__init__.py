from app.ai_core.embedding.embedding_service import (
    EmbeddingService,
    EmbeddingError,
    cosine_similarity,
)

__all__ = ["EmbeddingService", "EmbeddingError", "cosine_similarity"]
