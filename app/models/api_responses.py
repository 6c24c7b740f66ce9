"""
API Response Models

Pydantic models for consistent API response structures.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.competency import (
    Candidate,
    CompetencyType,
    EntityKind,
    Proficiency,
)


class ExtractionEventType(str, Enum):
    """Type of event emitted by an extraction run."""

    INFO = "info"
    RESULT = "result"
    ERROR = "error"


class ExtractionEvent(BaseModel):
    """
    One message of the extraction stream.

    A stream is zero or more INFO events followed by exactly one terminal
    RESULT or ERROR event.
    """

    type: ExtractionEventType = Field(..., description="info, result, or error")
    message: Optional[str] = Field(
        None, description="Progress or error message (info/error events)"
    )
    extracted_competencies: Optional[List[Candidate]] = Field(
        None, description="Resolved candidates, in model order (result event)"
    )
    entity_name: Optional[str] = Field(
        None, description="Name of the entity the content belongs to (result event)"
    )

    @property
    def is_terminal(self) -> bool:
        return self.type in (ExtractionEventType.RESULT, ExtractionEventType.ERROR)

    @classmethod
    def info(cls, message: str) -> "ExtractionEvent":
        return cls(type=ExtractionEventType.INFO, message=message)

    @classmethod
    def result(
        cls, candidates: List[Candidate], entity_name: Optional[str] = None
    ) -> "ExtractionEvent":
        return cls(
            type=ExtractionEventType.RESULT,
            extracted_competencies=candidates,
            entity_name=entity_name,
        )

    @classmethod
    def error(cls, message: str) -> "ExtractionEvent":
        return cls(type=ExtractionEventType.ERROR, message=message)


class CompetencyResponse(BaseModel):
    """A persisted competency."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: CompetencyType
    description: Optional[str] = None
    is_draft: bool = False
    has_embedding: bool = False
    created_at: Optional[datetime] = None


class EntityCompetencyResponse(BaseModel):
    """A competency linked to a person or course."""

    entity_kind: EntityKind
    entity_id: str
    competency: CompetencyResponse
    proficiency: Optional[Proficiency] = None


class CommitResponse(BaseModel):
    """Response model for the commit endpoint."""

    status: str = Field(..., description="Status: added")
    candidate_id: str
    competency_id: str = Field(..., description="Id the candidate was committed as")
    created_competency: bool = Field(
        False, description="Whether a new catalog entry was created"
    )
    proficiency: Optional[Proficiency] = None


class BackfillResponse(BaseModel):
    """Response model for the embedding backfill job."""

    total: int = 0
    processed: int = 0
    failed: int = 0
    failed_ids: List[str] = Field(default_factory=list)
