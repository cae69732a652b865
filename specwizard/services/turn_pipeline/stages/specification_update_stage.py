"""
Stage 4: Apply the extraction to the specification.

Produces a new version when something was extracted; otherwise the current
version carries through unchanged.
"""

from typing import TYPE_CHECKING

import structlog

from ..base import TurnStage
from specwizard.services.specification_ledger import SpecificationLedger

log = structlog.get_logger(__name__)

if TYPE_CHECKING:
    from ..context import PipelineContext


class SpecificationUpdateStage(TurnStage):
    requires = ("session",)

    def __init__(self, ledger: SpecificationLedger):
        self.ledger = ledger

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        session = context.require_session()
        current = session.state.specification

        if context.extraction is None:
            context.specification = current
            return context

        history = list(session.state.conversation_history)
        if context.user_message is not None:
            history.append(context.user_message)

        context.specification = self.ledger.update_specification(
            current, context.extraction, history, session_id=context.session_id
        )
        log.info(
            "specification_updated",
            session_id=context.session_id,
            topic=context.extraction.topic,
            version=context.specification.version,
        )
        return context
