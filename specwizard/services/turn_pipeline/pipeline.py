"""
Turn pipeline orchestrator.

Runs the stages of one turn in order, timing each. A failing stage is
recorded on the context (so callers can report where the turn stopped) and
its exception propagates unchanged.
"""

import time
from typing import List

import structlog

from .base import TurnStage
from .context import PipelineContext
from .result import TurnResult

log = structlog.get_logger(__name__)


class TurnPipeline:
    """Sequential runner for TurnStage instances."""

    def __init__(self, stages: List[TurnStage]):
        self.stages = stages

    @property
    def stage_names(self) -> List[str]:
        return [stage.stage_name for stage in self.stages]

    async def execute(self, context: PipelineContext) -> TurnResult:
        """
        Run every stage against the context.

        Returns:
            TurnResult built from the final context

        Raises:
            Exception: Whatever the failing stage raised
        """
        started = time.perf_counter()
        log.info(
            "turn_started",
            session_id=context.session_id,
            stages=self.stage_names,
        )

        for stage in self.stages:
            context = await self._run_stage(stage, context)

        latency_ms = int((time.perf_counter() - started) * 1000)
        log.info(
            "turn_completed",
            session_id=context.session_id,
            latency_ms=latency_ms,
            stage_timings=context.stage_timings,
        )
        return self._build_result(context, latency_ms)

    async def _run_stage(
        self, stage: TurnStage, context: PipelineContext
    ) -> PipelineContext:
        started = time.perf_counter()
        try:
            stage.check_requirements(context)
            context = await stage.process(context)
        except Exception as e:
            context.failed_stage = stage.stage_name
            log.error(
                "stage_failed",
                session_id=context.session_id,
                stage_name=stage.stage_name,
                error=str(e),
                exc_info=True,
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        context.stage_timings[stage.stage_name] = elapsed_ms
        log.debug("stage_completed", stage_name=stage.stage_name, duration_ms=elapsed_ms)
        return context

    def _build_result(self, context: PipelineContext, latency_ms: int) -> TurnResult:
        state = context.require_session().state
        return TurnResult(
            session_id=context.session_id,
            response=context.response_text,
            stage=context.stage or context.previous_stage,
            specification=context.specification or state.specification,
            completeness=context.completeness or state.completeness,
            progress=context.progress or state.progress,
            extracted_topic=context.extraction.topic if context.extraction else None,
            locked_section=context.locked_section,
            follow_up_questions=context.follow_up_questions,
            latency_ms=latency_ms,
        )
