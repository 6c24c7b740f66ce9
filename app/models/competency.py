"""
Competency Models

This module defines the data models for competencies, the candidates proposed by
the extraction model, and the identities a candidate can be committed under.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import PROVISIONAL_ID_PREFIX, CANDIDATE_COUNT_RANGE


class CompetencyType(str, Enum):
    """Closed set of competency types."""

    KNOWLEDGE = "KNOWLEDGE"  # Theoretical understanding
    SKILL = "SKILL"  # Practical abilities
    TECH_TOOL = "TECH_TOOL"  # Technologies / software
    ABILITY = "ABILITY"  # General capabilities
    VALUE = "VALUE"  # Principles / beliefs
    BEHAVIOUR = "BEHAVIOUR"  # Soft skills
    ENABLER = "ENABLER"  # Supporting capabilities


class Proficiency(str, Enum):
    """Proficiency levels for proficiency-supporting competency types."""

    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"


class EntityKind(str, Enum):
    """Kinds of entity a competency can be attached to."""

    PERSON = "people"
    COURSE = "courses"


PROFICIENCY_SUPPORTING_TYPES = frozenset(
    {
        CompetencyType.SKILL,
        CompetencyType.TECH_TOOL,
        CompetencyType.ABILITY,
        CompetencyType.KNOWLEDGE,
    }
)


def supports_proficiency(competency_type: CompetencyType) -> bool:
    """Check if a competency type supports proficiency levels."""
    return CompetencyType(competency_type) in PROFICIENCY_SUPPORTING_TYPES


# Provisional identifiers


def new_provisional_id() -> str:
    """Mint a placeholder id for a candidate that is not persisted yet."""
    return f"{PROVISIONAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_provisional_id(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(PROVISIONAL_ID_PREFIX)


# LLM structured output


class ExtractedCompetency(BaseModel):
    """A single competency proposed by the extraction model."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        ..., description="The name of the competency - be specific and actionable"
    )
    type: CompetencyType = Field(
        ...,
        description=(
            "Competency type: KNOWLEDGE (theoretical understanding), SKILL (practical abilities), "
            "TECH_TOOL (technologies/software), ABILITY (general capabilities), VALUE (principles/beliefs), "
            "BEHAVIOUR (soft skills), ENABLER (supporting capabilities)"
        ),
    )
    description: str = Field(
        ...,
        description="Brief but clear description of what this competency entails and why it's relevant to the content",
    )
    suggested_proficiency: Proficiency = Field(
        ...,
        description=(
            "Proficiency level based on content evidence: BEGINNER (mentioned/basic), "
            "INTERMEDIATE (demonstrated use), ADVANCED (proven expertise), EXPERT (leadership/mastery)"
        ),
    )

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Competency name must not be empty")
        return value


class CompetencyExtractionOutput(BaseModel):
    """Extraction output for a piece of content."""

    model_config = ConfigDict(extra="forbid")

    competencies: List[ExtractedCompetency] = Field(
        ...,
        min_length=CANDIDATE_COUNT_RANGE[0],
        max_length=CANDIDATE_COUNT_RANGE[1],
        description="Array of extracted competencies from the provided content",
    )


# Resolution output


class SimilarOption(BaseModel):
    """An existing competency surfaced as a possible duplicate of a candidate."""

    id: str = Field(..., description="Persisted competency id")
    name: str
    type: CompetencyType
    description: Optional[str] = None
    similarity: float = Field(..., ge=0.0, le=1.0, description="Cosine similarity")


class CompetencyOption(BaseModel):
    """One selectable identity for a candidate (the candidate itself or a similar one)."""

    id: str
    name: str
    type: CompetencyType
    description: Optional[str] = None
    similarity: Optional[float] = None
    is_primary: bool = False

    @property
    def is_provisional(self) -> bool:
        return is_provisional_id(self.id)


class Candidate(BaseModel):
    """
    A resolved extraction candidate.

    `id` is a persisted competency id when an exact (name, type) match existed at
    resolution time, otherwise a provisional id.
    """

    id: str = Field(..., description="Existing competency id or provisional id")
    name: str
    type: CompetencyType
    description: Optional[str] = None
    suggested_proficiency: Optional[Proficiency] = None
    similar: List[SimilarOption] = Field(default_factory=list)

    @property
    def is_provisional(self) -> bool:
        return is_provisional_id(self.id)

    def options(self) -> List[CompetencyOption]:
        """Primary option (the candidate itself) first, then similar alternatives."""
        primary = CompetencyOption(
            id=self.id,
            name=self.name,
            type=self.type,
            description=self.description,
            is_primary=True,
        )
        return [primary] + [
            CompetencyOption(**option.model_dump()) for option in self.similar
        ]


# Identities


class CompetencyDraft(BaseModel):
    """Editable fields of a competency that will be created on commit."""

    name: str = Field(..., description="Competency name")
    type: CompetencyType = Field(..., description="Competency type")
    description: Optional[str] = Field(None, description="Competency description")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()


@dataclass(frozen=True)
class ExistingIdentity:
    """A competency that is already in the catalog."""

    id: str


@dataclass(frozen=True)
class ProvisionalIdentity:
    """A competency that only exists as a draft until it is committed."""

    token: str
    draft: Optional[CompetencyDraft] = None


Identity = Union[ExistingIdentity, ProvisionalIdentity]


def parse_identity(raw_id: str, draft: Optional[CompetencyDraft] = None) -> Identity:
    """Turn a wire id (marker-prefixed or persisted) into a tagged identity."""
    if not raw_id:
        raise ValueError("Identity id must not be empty")
    if is_provisional_id(raw_id):
        return ProvisionalIdentity(token=raw_id, draft=draft)
    return ExistingIdentity(id=raw_id)


def to_wire(identity: Identity) -> str:
    if isinstance(identity, ProvisionalIdentity):
        return identity.token
    return identity.id


# Requests


class ExcludedCompetency(BaseModel):
    """A competency already linked to the target entity."""

    id: str
    name: str
    type: CompetencyType


class ExtractionRequest(BaseModel):
    """Input of one extraction run."""

    content: str = Field(
        ..., min_length=10, description="Source text (CV, course description, ...)"
    )
    context_hint: Optional[str] = Field(
        None, description="Extra instruction describing what the content is"
    )
    entity_name: Optional[str] = Field(
        None, description="Name of the person or course the content belongs to"
    )
    exclude_competencies: List[ExcludedCompetency] = Field(
        default_factory=list,
        description="Competencies already linked to the target entity",
    )


class CommitRequest(BaseModel):
    """Final choice for one candidate."""

    candidate_id: str = Field(..., description="Stable id of the candidate")
    selected_option_id: str = Field(
        ..., description="Provisional id or persisted competency id"
    )
    draft: Optional[CompetencyDraft] = Field(
        None, description="Draft fields, used only for provisional identities"
    )
    proficiency: Optional[Proficiency] = None

    def identity(self) -> Identity:
        return parse_identity(self.selected_option_id, self.draft)


class ResolveRequest(BaseModel):
    """Re-resolve a single candidate (e.g. after a name conflict)."""

    name: str
    type: CompetencyType
    description: Optional[str] = None
    suggested_proficiency: Optional[Proficiency] = None
