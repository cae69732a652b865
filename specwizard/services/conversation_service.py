"""
Conversation orchestration service.

Main entry point for processing one user message, delegating to a pipeline
of composable stages: context loading, generation, extraction,
specification update, completeness and persistence.

When any stage fails, the error and the triggering input are preserved via
SessionStore.preserve_error_state before the error reaches the caller.
"""

from typing import Optional

import structlog

from specwizard.llm.router import GenerationRouter
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.conversation_stage import ConversationStageEngine
from specwizard.services.extraction_service import ExtractionService
from specwizard.services.follow_up_service import FollowUpPlanner
from specwizard.services.session_store import SessionStore
from specwizard.services.specification_ledger import SpecificationLedger
from specwizard.services.turn_pipeline import PipelineContext, TurnPipeline, TurnResult
from specwizard.services.turn_pipeline.stages import (
    CompletenessStage,
    ContextLoadingStage,
    ExtractionStage,
    GenerationStage,
    PersistenceStage,
    SpecificationUpdateStage,
)

log = structlog.get_logger(__name__)


class ConversationService:
    """Orchestrates conversational turns for wizard sessions."""

    def __init__(
        self,
        session_store: SessionStore,
        router: GenerationRouter,
        ledger: Optional[SpecificationLedger] = None,
        extraction_service: Optional[ExtractionService] = None,
        planner: Optional[FollowUpPlanner] = None,
    ):
        """
        Initialize conversation service with pipeline.

        Args:
            session_store: Session store (also supplies the tracker and stage engine)
            router: Generation router shared across sessions
            ledger: Specification ledger (creates default if None)
            extraction_service: Extraction service (creates default if None)
            planner: Follow-up planner (creates default if None)
        """
        self.session_store = session_store
        self.router = router
        self.ledger = ledger or SpecificationLedger()
        self.extraction = extraction_service or ExtractionService()
        self.planner = planner or FollowUpPlanner()
        self.tracker: CompletenessTracker = session_store.tracker
        self.stage_engine: ConversationStageEngine = session_store.stage_engine

        self.pipeline = self._build_pipeline()

        log.info(
            "conversation_service_initialized",
            pipeline_stages=len(self.pipeline.stages),
        )

    def _build_pipeline(self) -> TurnPipeline:
        stages = [
            ContextLoadingStage(
                session_store=self.session_store,
                stage_engine=self.stage_engine,
                tracker=self.tracker,
            ),
            GenerationStage(router=self.router),
            ExtractionStage(extraction_service=self.extraction),
            SpecificationUpdateStage(ledger=self.ledger),
            CompletenessStage(
                tracker=self.tracker,
                stage_engine=self.stage_engine,
                planner=self.planner,
            ),
            PersistenceStage(session_store=self.session_store),
        ]
        return TurnPipeline(stages)

    async def process_message(self, session_id: str, text: str) -> TurnResult:
        """
        Process one user message.

        Args:
            session_id: Session ID
            text: User message text

        Returns:
            TurnResult with the reply, the current specification and completeness

        Raises:
            SessionNotFoundError: If the session does not exist
            SpecificationVersionConflictError: If a concurrent turn wrote first
        """
        context = PipelineContext(session_id=session_id, user_input=text)
        try:
            return await self.pipeline.execute(context)
        except Exception as e:
            log.warning(
                "turn_failed",
                session_id=session_id,
                failed_stage=context.failed_stage,
                error_type=type(e).__name__,
            )
            await self.session_store.preserve_error_state(
                session_id, e, text, context.state_snapshot()
            )
            raise
