"""
Shared test fixtures.

- In-memory SQLite catalog (fresh database per test)
- Deterministic fake embeddings: explicit vectors for known names, distinct
  one-hot vectors (cosine 0 to everything else) for unknown names
- Fake structured-output chat model for the extractor
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import math
from typing import Dict, List, Optional

import pytest
from langchain_core.embeddings import Embeddings
from sqlalchemy.orm import Session

from app.ai_core.embedding import EmbeddingService
from app.ai_core.extraction import CompetencyExtractor
from app.ai_core.matching import IdentityResolver, SqlSimilarityIndex
from app.db.session import ensure_tables, get_engine, init_db
from app.models.competency import (
    CompetencyExtractionOutput,
    CompetencyType,
    ExtractedCompetency,
    Proficiency,
)
from app.services.catalog import CompetencyCatalog

DIMENSIONS = 64
_FIRST_GENERATED_AXIS = 16


def unit(*values: float) -> List[float]:
    """Pad `values` to DIMENSIONS floats."""
    vector = list(values) + [0.0] * (DIMENSIONS - len(values))
    return vector[:DIMENSIONS]


def vector_with_similarity(similarity: float) -> List[float]:
    """Unit vector whose cosine with unit(1.0) is `similarity`."""
    return unit(similarity, math.sqrt(1.0 - similarity**2))


class FakeEmbeddings(Embeddings):
    """LangChain Embeddings with predictable vectors."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None):
        self.vectors = {k.casefold(): v for k, v in (vectors or {}).items()}
        self.fail_on = set()
        self.calls: List[str] = []
        self._generated: Dict[str, List[float]] = {}

    def set(self, name: str, vector: List[float]) -> None:
        self.vectors[name.casefold()] = vector

    def embed_query(self, text: str) -> List[float]:
        self.calls.append(text)
        key = text.casefold()
        if key in self.fail_on:
            raise RuntimeError(f"embedding backend unavailable for {text}")
        if key in self.vectors:
            return list(self.vectors[key])
        if key not in self._generated:
            axis = _FIRST_GENERATED_AXIS + len(self._generated) % (
                DIMENSIONS - _FIRST_GENERATED_AXIS
            )
            vector = [0.0] * DIMENSIONS
            vector[axis] = 1.0
            self._generated[key] = vector
        return list(self._generated[key])

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self.embed_query(text) for text in texts]


class FakeStructuredLLM:
    """Stands in for a chat model bound with with_structured_output."""

    def __init__(self, output=None, error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.schema = None
        self.messages = None

    def with_structured_output(self, schema):
        self.schema = schema
        return self

    async def ainvoke(self, messages):
        self.messages = messages
        if self.error is not None:
            raise self.error
        return self.output


def make_item(
    name: str,
    competency_type: CompetencyType = CompetencyType.SKILL,
    proficiency: Proficiency = Proficiency.INTERMEDIATE,
    description: Optional[str] = None,
) -> ExtractedCompetency:
    return ExtractedCompetency(
        name=name,
        type=competency_type,
        description=description or f"Can apply {name}",
        suggested_proficiency=proficiency,
    )


def make_output(*items: ExtractedCompetency) -> CompetencyExtractionOutput:
    """Extraction output padded with unrelated items up to the 5-item minimum."""
    items = list(items)
    filler = 1
    while len(items) < 5:
        items.append(make_item(f"Filler Skill {filler}", CompetencyType.BEHAVIOUR))
        filler += 1
    return CompetencyExtractionOutput(competencies=items)


def add_competency(
    catalog: CompetencyCatalog,
    name: str,
    competency_type: CompetencyType,
    vector: Optional[List[float]] = None,
    description: Optional[str] = None,
    is_draft: bool = False,
):
    """Persist a competency, with an embedding when `vector` is given."""
    competency = catalog.create(
        name, competency_type, description=description, is_draft=is_draft, commit=False
    )
    if vector is not None:
        catalog.store_embedding(competency.id, vector)
    catalog.commit()
    return competency


@pytest.fixture
def db_session():
    init_db("sqlite://", echo=False)
    ensure_tables()
    session = Session(get_engine(), expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def catalog(db_session):
    return CompetencyCatalog(db_session)


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def embedder(fake_embeddings):
    return EmbeddingService(embeddings=fake_embeddings)


@pytest.fixture
def index(catalog):
    return SqlSimilarityIndex(catalog)


@pytest.fixture
def resolver(catalog, embedder, index):
    return IdentityResolver(catalog, embedder, index)


@pytest.fixture
def fake_llm():
    return FakeStructuredLLM()


@pytest.fixture
def extractor(fake_llm):
    return CompetencyExtractor(llm=fake_llm)
