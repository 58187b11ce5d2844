"""
Extraction Stage

Asks the structured completion capability for entity mentions and
relationship triples in one chunk of paper text.
"""

import logging
from typing import Optional

from config import settings
from exceptions import CompletionError
from models.pipeline import ExtractionResult

from .prompts import EXTRACTION_SYSTEM_PROMPT, EXTRACTION_USER_PROMPT

logger = logging.getLogger(__name__)


class ExtractionStage:
    """
    Chunk-level entity and relationship extraction.

    A completion failure yields an empty ``ExtractionResult`` so one bad
    chunk never aborts the paper.
    """

    def __init__(self, completion, temperature: Optional[float] = None, retries: Optional[int] = None):
        self.completion = completion
        self.temperature = settings.extraction_temperature if temperature is None else temperature
        self.retries = retries

    def build_prompt(self, text: str, section: str) -> str:
        return EXTRACTION_USER_PROMPT.format(section=section, text=text)

    async def extract(
        self,
        paper_id: str,
        chunk_index: int,
        text: str,
        section: str,
    ) -> ExtractionResult:
        if not text or not text.strip():
            return ExtractionResult.empty()

        section = getattr(section, "value", section)
        try:
            result = await self.completion.complete_model(
                EXTRACTION_SYSTEM_PROMPT,
                self.build_prompt(text, section),
                ExtractionResult,
                temperature=self.temperature,
                retries=self.retries,
            )
        except CompletionError as e:
            logger.warning(f"Extraction failed for paper {paper_id} chunk {chunk_index}: {e.message}")
            return ExtractionResult.empty()

        logger.info(
            f"Paper {paper_id} chunk {chunk_index} ({section}): "
            f"{len(result.entities)} entities, {len(result.relationships)} relationships"
        )
        return result
