from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from functools import lru_cache


# Product-level tuning knobs (not negotiable per request)
MIN_SIMILARITY = 0.55
MAX_SIMILAR_OPTIONS = 5
CANDIDATE_COUNT_RANGE = (5, 20)

# Marker for identities that do not exist in the catalog yet.
# Persisted ids are UUID hex strings and never start with it.
PROVISIONAL_ID_PREFIX = "+"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Competency Engine"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./competencies.db"
    db_echo: bool = False

    # OpenAI models (via gen_ai_hub proxy)
    # No API key needed - uses gen_ai_hub proxy
    openai_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    temperature: float = 0.3
    llm_max_retries: int = 2  # Transport-level retries of the extraction call

    # SAP GenAI SDK
    sap_genai_api_url: str = ""
    sap_genai_api_key: str = ""
    sap_genai_deployment_id: str = ""
    sap_genai_endpoint: str = ""

    # Extraction / Matching
    min_similarity: float = MIN_SIMILARITY
    max_similar_options: int = MAX_SIMILAR_OPTIONS
    min_candidates: int = CANDIDATE_COUNT_RANGE[0]
    max_candidates: int = CANDIDATE_COUNT_RANGE[1]
    min_content_length: int = 10

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
