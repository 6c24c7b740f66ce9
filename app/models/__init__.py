# Shared data models
from app.models.competency import (
    Candidate,
    CommitRequest,
    CompetencyDraft,
    CompetencyExtractionOutput,
    CompetencyOption,
    CompetencyType,
    EntityKind,
    ExcludedCompetency,
    ExistingIdentity,
    ExtractedCompetency,
    ExtractionRequest,
    Proficiency,
    ProvisionalIdentity,
    SimilarOption,
    is_provisional_id,
    new_provisional_id,
    parse_identity,
    to_wire,
    supports_proficiency,
)
from app.models.api_responses import ExtractionEvent, ExtractionEventType

__all__ = [
    "Candidate",
    "CommitRequest",
    "CompetencyDraft",
    "CompetencyExtractionOutput",
    "CompetencyOption",
    "CompetencyType",
    "EntityKind",
    "ExcludedCompetency",
    "ExistingIdentity",
    "ExtractedCompetency",
    "ExtractionRequest",
    "Proficiency",
    "ProvisionalIdentity",
    "SimilarOption",
    "is_provisional_id",
    "new_provisional_id",
    "parse_identity",
    "to_wire",
    "supports_proficiency",
    "ExtractionEvent",
    "ExtractionEventType",
]
