"""
Stage 3: Extract specification facts from the user message.
"""

from typing import TYPE_CHECKING

from ..base import TurnStage
from specwizard.services.extraction_service import ExtractionService

if TYPE_CHECKING:
    from ..context import PipelineContext


class ExtractionStage(TurnStage):
    """Populates PipelineContext.extraction (None when nothing was found)."""

    def __init__(self, extraction_service: ExtractionService):
        self.extraction = extraction_service

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        context.extraction = self.extraction.extract_information(
            context.user_input, context.response_text
        )
        return context
