"""Contract tests for the turn pipeline stages."""

from datetime import datetime, timedelta, timezone

import pytest

from specwizard.domain.models.conversation import ConversationStage
from specwizard.domain.models.extraction import OverviewExtraction
from specwizard.domain.models.message import MessageRole, user_message
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.conversation_stage import PROBLEM_STATEMENT, ConversationStageEngine
from specwizard.services.extraction_service import ExtractionService
from specwizard.services.follow_up_service import FollowUpPlanner
from specwizard.services.specification_ledger import SpecificationLedger
from specwizard.services.turn_pipeline.context import PipelineContext
from specwizard.services.turn_pipeline.pipeline import TurnPipeline
from specwizard.services.turn_pipeline.stages import (
    CompletenessStage,
    ContextLoadingStage,
    ExtractionStage,
    GenerationStage,
    PersistenceStage,
    SpecificationUpdateStage,
)
from specwizard.services.turn_pipeline.stages.context_loading_stage import stamped_after

USER_INPUT = "I want to build a booking system for my hair salon"


@pytest.fixture
def stage_engine():
    return ConversationStageEngine()


@pytest.fixture
def tracker():
    return CompletenessTracker()


@pytest.fixture
async def loaded_context(session_store, stage_engine, tracker):
    """Context after ContextLoadingStage for a fresh session."""
    session = await session_store.create_session()
    context = PipelineContext(session_id=session.id, user_input=USER_INPUT)
    return await ContextLoadingStage(session_store, stage_engine, tracker).process(context)


class TestPipelineContext:
    def test_session_required_before_loading(self):
        context = PipelineContext(session_id="s", user_input="hi")

        with pytest.raises(RuntimeError, match="contract violation"):
            context.require_session()
        assert context.state_snapshot() is None

    async def test_snapshot_includes_user_message(self, loaded_context):
        snapshot = loaded_context.state_snapshot()

        assert [m.content for m in snapshot.conversation_history] == [USER_INPUT]
        assert snapshot.specification.version == 0


class TestContextLoadingStage:
    async def test_populates_context(self, loaded_context):
        assert loaded_context.session is not None
        assert loaded_context.user_message.role == MessageRole.USER
        assert loaded_context.previous_stage == ConversationStage.INITIAL
        history = loaded_context.conversation_context.history
        assert history[-1].content == USER_INPUT

    def test_stamped_after_moves_message_past_floor(self):
        floor = datetime.now(timezone.utc) + timedelta(hours=1)

        message = stamped_after(user_message("late"), floor)

        assert message.timestamp > floor
        assert message.content == "late"

    def test_stamped_after_keeps_later_message(self):
        message = user_message("now")
        assert stamped_after(message, None) is message
        assert stamped_after(message, message.timestamp - timedelta(seconds=1)) is message


class TestGenerationStage:
    async def test_collects_streamed_reply(self, loaded_context, generation_router):
        context = await GenerationStage(generation_router).process(loaded_context)

        assert context.response_text.startswith("Thanks! Who will be using it?")
        assert context.assistant_message.role == MessageRole.ASSISTANT
        assert context.assistant_message.timestamp > context.user_message.timestamp

    async def test_requires_loaded_context(self, generation_router):
        context = PipelineContext(session_id="s", user_input="hi")
        pipeline = TurnPipeline([GenerationStage(generation_router)])

        with pytest.raises(RuntimeError, match="conversation_context, user_message"):
            await pipeline.execute(context)
        assert context.failed_stage == "GenerationStage"


class TestExtractionAndUpdate:
    async def test_extraction_feeds_new_version(self, loaded_context):
        context = await ExtractionStage(ExtractionService()).process(loaded_context)
        context = await SpecificationUpdateStage(SpecificationLedger()).process(context)

        assert context.extraction.topic == "overview"
        assert context.specification.version == 1
        assert context.session.state.specification.version == 0

    async def test_no_extraction_keeps_current_version(self, loaded_context):
        loaded_context.extraction = None

        context = await SpecificationUpdateStage(SpecificationLedger()).process(loaded_context)

        assert context.specification is loaded_context.session.state.specification


class TestCompletenessStage:
    async def test_forward_transition_locks_problem_statement(
        self, loaded_context, stage_engine, tracker
    ):
        loaded_context.specification = SpecificationLedger().update_specification(
            loaded_context.session.state.specification,
            OverviewExtraction(overview="A booking system for a hair salon"),
        )

        context = await CompletenessStage(tracker, stage_engine, FollowUpPlanner()).process(
            loaded_context
        )

        assert context.stage == ConversationStage.DISCOVERY
        assert context.locked_section.name == PROBLEM_STATEMENT
        assert "overview" not in context.completeness.missing_sections
        assert context.follow_up_questions


class TestPersistenceStage:
    async def test_writes_turn(self, session_store, loaded_context, generation_router):
        context = await GenerationStage(generation_router).process(loaded_context)

        context = await PersistenceStage(session_store).process(context)

        loaded = await session_store.get_session(context.session_id)
        assert [m.role for m in loaded.state.conversation_history] == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
        ]
        assert context.saved_state.conversation_history == loaded.state.conversation_history
