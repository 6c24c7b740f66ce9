from app.ai_core.extraction.competency_extractor import (
    CompetencyExtractor,
    CompetencyExtractionError,
)

__all__ = ["CompetencyExtractor", "CompetencyExtractionError"]
