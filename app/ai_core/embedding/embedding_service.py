"""
Competency Embedding Service

Converts a competency name into a fixed-dimension vector through the gen_ai_hub
embeddings proxy, plus the cosine helper used by the similarity index.
"""

import logging
from typing import List, Sequence

import numpy as np

from app.config import get_settings

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """
    Raised when an embedding cannot be generated.
    This is a retryable system error (503) - callers may skip the affected
    candidate instead of aborting a whole batch.
    """

    pass


class EmbeddingService:
    """
    Stateless wrapper around the remote embedding model.
    """

    def __init__(self, embeddings=None):
        """
        Args:
            embeddings: Optional LangChain Embeddings implementation; defaults
                        to OpenAIEmbeddings behind the gen_ai_hub proxy
        """
        config = get_settings()
        self.model = config.embedding_model

        if embeddings is None:
            from gen_ai_hub.proxy.langchain.openai import OpenAIEmbeddings
            from gen_ai_hub.proxy.core.proxy_clients import get_proxy_client

            self.proxy_client = get_proxy_client("gen-ai-hub")
            embeddings = OpenAIEmbeddings(
                proxy_model_name=config.embedding_model,
                proxy_client=self.proxy_client,
            )

        self.embeddings = embeddings
        logger.info(f"EmbeddingService initialized (model={self.model})")

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a competency name.

        Args:
            text: The competency name

        Returns:
            The embedding vector

        Raises:
            EmbeddingError: If the text is blank or the backend call fails
        """
        cleaned = (text or "").strip()
        if not cleaned:
            raise EmbeddingError("Cannot generate an embedding for empty text")

        try:
            vector = await self.embeddings.aembed_query(cleaned)
        except Exception as e:
            logger.error(f"Error generating embedding for {cleaned!r}: {e}", exc_info=True)
            raise EmbeddingError(
                f"Failed to generate embedding for text: {cleaned}"
            ) from e

        if not vector:
            raise EmbeddingError(f"Embedding backend returned no vector for: {cleaned}")

        return [float(value) for value in vector]


def cosine_similarity(u: Sequence[float], v: Sequence[float]) -> float:
    """
    Cosine similarity for two equal-length vectors, in [-1, 1].

    Raises:
        ValueError: If the vectors have different dimensions
    """
    a = np.asarray(u, dtype=float)
    b = np.asarray(v, dtype=float)
    if a.shape != b.shape:
        raise ValueError("Embeddings must have the same dimensions")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))
