"""
Competency Extraction Module

This module asks the language model for candidate competencies in a piece of
free-form content (a CV, a course description, ...).

The call uses structured output bound to CompetencyExtractionOutput, so the
type and proficiency of every item are drawn from the closed enumerations and
the item count stays within 5-20. An answer that violates the schema fails the
whole call; only transport errors are retried (by the client, not here).
"""

import logging
from typing import Iterable, Optional

from langchain_core.messages import SystemMessage, HumanMessage

from app.models.competency import (
    CompetencyExtractionOutput,
    ExcludedCompetency,
)
from app.ai_core.prompts.extraction import (
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_USER_PROMPT_TEMPLATE,
)
from app.config import get_settings
from app.utils import format_excluded_competencies, format_entity_context

logger = logging.getLogger(__name__)


# Custom Exceptions


class CompetencyExtractionError(Exception):
    """
    Raised when competency extraction fails.
    This is a system error (500) - the model call failed or its output
    violated the extraction schema. Fatal for the whole extraction run.
    """

    pass


class CompetencyExtractor:
    """
    Extracts candidate competencies from content with a single model call.
    """

    def __init__(self, llm=None):
        """
        Initialize the extractor using SAP gen_ai_hub SDK.

        Args:
            llm: Optional pre-built chat model (anything exposing
                 with_structured_output); defaults to the gen_ai_hub proxy
        """
        config = get_settings()

        if llm is None:
            from gen_ai_hub.proxy.langchain.openai import ChatOpenAI
            from gen_ai_hub.proxy.core.proxy_clients import get_proxy_client

            # Initialize proxy client for gen_ai_hub
            self.proxy_client = get_proxy_client("gen-ai-hub")

            # Retries cover the transport only, never re-interpretation of the output
            llm = ChatOpenAI(
                proxy_model_name=config.openai_model,
                proxy_client=self.proxy_client,
                temperature=config.temperature,
                max_retries=config.llm_max_retries,
            )

        self.llm = llm
        self.structured_llm = llm.with_structured_output(CompetencyExtractionOutput)

        self.model = config.openai_model
        self.min_items = config.min_candidates
        self.max_items = config.max_candidates

    async def extract(
        self,
        content: str,
        context_hint: Optional[str] = None,
        entity_name: Optional[str] = None,
        exclude: Optional[Iterable[ExcludedCompetency]] = None,
    ) -> CompetencyExtractionOutput:
        """
        Extract candidate competencies from content.

        Args:
            content: Source text
            context_hint: Optional instruction describing the content
            entity_name: Optional name of the person/course
            exclude: Competencies already linked to the entity; the model is
                     told not to propose them (prompt-level only)

        Returns:
            CompetencyExtractionOutput with 5-20 items

        Raises:
            CompetencyExtractionError: If the model call fails or the output
                                       violates the schema
        """
        excluded = list(exclude or [])
        logger.info(
            f"Starting competency extraction ({len(content)} chars, "
            f"{len(excluded)} excluded, entity={entity_name!r})"
        )

        try:
            user_prompt = EXTRACTION_USER_PROMPT_TEMPLATE.format(
                entity_context=format_entity_context(entity_name),
                content=content.strip(),
                context_hint=(context_hint or "").strip(),
                excluded_competencies=format_excluded_competencies(excluded),
                min_items=self.min_items,
                max_items=self.max_items,
            )

            messages = [
                SystemMessage(content=EXTRACTION_SYSTEM_PROMPT),
                HumanMessage(content=user_prompt),
            ]

            output = await self.structured_llm.ainvoke(messages)

            if not output:
                raise CompetencyExtractionError(
                    "LLM returned empty competency extraction output"
                )

            # Some providers hand back the raw parsed dict
            if not isinstance(output, CompetencyExtractionOutput):
                output = CompetencyExtractionOutput.model_validate(output)

            self._check_item_count(output)

        except CompetencyExtractionError:
            # Re-raise custom exception
            raise
        except Exception as e:
            logger.error(f"Error extracting competencies: {str(e)}", exc_info=True)
            raise CompetencyExtractionError(
                f"Failed to extract competencies: {str(e)}"
            ) from e

        logger.info(f"Model proposed {len(output.competencies)} competencies")
        return output

    def _check_item_count(self, output: CompetencyExtractionOutput) -> None:
        """Enforce the configured item range (may be tighter than the schema's)."""
        count = len(output.competencies)
        if count < self.min_items or count > self.max_items:
            raise CompetencyExtractionError(
                f"LLM returned {count} competencies, expected "
                f"{self.min_items}-{self.max_items}"
            )
