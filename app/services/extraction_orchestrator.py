"""
Extraction Orchestrator Service

Drives one extraction run end to end and reports progress as a stream of
events:

1. "starting" info event
2. one model call for 5-20 candidate competencies (fatal on failure)
3. identity resolution per candidate, in model order, with one info event per
   candidate; a candidate that fails to resolve is dropped
4. exactly one terminal result (or error) event

Candidates are resolved sequentially so progress order is deterministic and
the embedding backend sees one request at a time. A consumer that stops
iterating (client disconnect) stops the run; nothing is rolled back since
resolution only reads, apart from idempotent embedding backfills.
"""

import logging
from typing import AsyncIterator, List, Set, Tuple

from app.ai_core.extraction import CompetencyExtractor, CompetencyExtractionError
from app.ai_core.matching import IdentityResolver
from app.config import get_settings
from app.models.api_responses import ExtractionEvent
from app.models.competency import Candidate, ExtractionRequest
from app.utils import name_type_key

logger = logging.getLogger(__name__)


class ExtractionOrchestrator:
    """
    Orchestrates competency extraction and identity resolution.
    """

    def __init__(self, extractor: CompetencyExtractor, resolver: IdentityResolver):
        self.extractor = extractor
        self.resolver = resolver
        self.min_content_length = get_settings().min_content_length

    async def extract(self, request: ExtractionRequest) -> AsyncIterator[ExtractionEvent]:
        """
        Run extraction for one piece of content.

        Args:
            request: Content, optional context hint / entity name and the
                     competencies already linked to the entity

        Yields:
            INFO events, then one RESULT or ERROR event
        """
        yield ExtractionEvent.info("Starting competency extraction...")

        content = (request.content or "").strip()
        if len(content) < self.min_content_length:
            yield ExtractionEvent.error(
                f"Content must be at least {self.min_content_length} characters long"
            )
            return

        # Step 1: Model call (the only globally fatal step)
        try:
            output = await self.extractor.extract(
                content=content,
                context_hint=request.context_hint,
                entity_name=request.entity_name,
                exclude=request.exclude_competencies,
            )
        except CompetencyExtractionError as e:
            logger.error(f"Extraction failed: {e}")
            yield ExtractionEvent.error(str(e))
            return
        except Exception as e:
            logger.error(f"Unexpected error during extraction: {e}", exc_info=True)
            yield ExtractionEvent.error(f"Failed to extract competencies: {e}")
            return

        items = output.competencies
        total = len(items)
        yield ExtractionEvent.info(f"Found {total} potential competencies")

        # Step 2: Resolve each candidate in order
        excluded_ids: Set[str] = {c.id for c in request.exclude_competencies}
        excluded_keys: Set[Tuple[str, str]] = {
            name_type_key(c.name, c.type) for c in request.exclude_competencies
        }
        seen_ids: Set[str] = set()
        seen_keys: Set[Tuple[str, str]] = set()
        candidates: List[Candidate] = []

        for index, item in enumerate(items, start=1):
            yield ExtractionEvent.info(f"Processing {index}/{total}: {item.name}")

            try:
                candidate = await self.resolver.resolve(item)
            except Exception as e:
                logger.warning(
                    f"Dropping candidate {index}/{total} ({item.name!r}): {e}"
                )
                continue

            key = name_type_key(candidate.name, candidate.type)
            if candidate.id in excluded_ids or key in excluded_keys:
                logger.info(f"Skipping already linked competency: {candidate.name}")
                continue
            if candidate.id in seen_ids or key in seen_keys:
                logger.info(f"Skipping duplicate candidate: {candidate.name}")
                continue

            seen_ids.add(candidate.id)
            seen_keys.add(key)
            candidates.append(candidate)

        logger.info(
            f"Extraction complete: {len(candidates)} of {total} candidates resolved"
        )
        yield ExtractionEvent.result(candidates, entity_name=request.entity_name)
