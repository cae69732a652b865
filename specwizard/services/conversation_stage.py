"""Conversation stage engine.

Stages run linearly:

    initial -> discovery -> refinement -> validation -> completion

The stage is a pure function of (message count, specification version,
missing-section count, ready-for-handoff flag). It is recomputed every turn
and never stored on the session.

Forward transitions may lock a checkpoint summarising what was just
settled. Checkpoints are append-only: a redo appends a replacement whose
``supersedes`` names the old checkpoint.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

import structlog

from specwizard.core.config import ConversationConfig
from specwizard.domain.models.completeness import CompletenessState
from specwizard.domain.models.conversation import ConversationStage
from specwizard.domain.models.message import Message, MessageRole
from specwizard.domain.models.session import (
    LockedSection,
    SessionState,
    active_locked_sections,
)
from specwizard.domain.models.specification import Specification

log = structlog.get_logger(__name__)

PROBLEM_STATEMENT = "Problem Statement"
USERS_AND_SCOPE = "Target Users & Scope"
REQUIREMENTS = "Requirements"
FULL_SPECIFICATION = "Full Specification"

# Checkpoint locked when a conversation enters the keyed stage.
CHECKPOINT_ON_ENTRY = {
    ConversationStage.DISCOVERY: PROBLEM_STATEMENT,
    ConversationStage.REFINEMENT: USERS_AND_SCOPE,
    ConversationStage.VALIDATION: REQUIREMENTS,
    ConversationStage.COMPLETION: FULL_SPECIFICATION,
}

LOCKED_DECISIONS_HEADER = "LOCKED IN DECISIONS (do not re-litigate):"


class ConversationStageEngine:
    """Stateless stage computation, checkpointing and history pruning."""

    def __init__(self, config: Optional[ConversationConfig] = None):
        self.config = config or ConversationConfig()

    def determine_stage(
        self,
        message_count: int,
        specification: Optional[Specification],
        completeness: Optional[CompletenessState],
    ) -> ConversationStage:
        missing = completeness.missing_sections if completeness else []
        ready = completeness.ready_for_handoff if completeness else False

        if message_count == 0:
            return ConversationStage.INITIAL
        if specification is None or specification.version == 0:
            return ConversationStage.DISCOVERY
        if len(missing) > self.config.discovery_missing_threshold:
            return ConversationStage.DISCOVERY
        if missing:
            return ConversationStage.REFINEMENT
        if not ready or message_count < self.config.min_messages_for_completion:
            return ConversationStage.VALIDATION
        return ConversationStage.COMPLETION

    def stage_for_state(self, state: SessionState) -> ConversationStage:
        return self.determine_stage(
            len(state.conversation_history), state.specification, state.completeness
        )

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def should_create_checkpoint(
        self, previous: ConversationStage, current: ConversationStage
    ) -> Optional[str]:
        """Section name to lock for a forward transition, else None.

        Regressions and unchanged stages never lock anything.
        """
        if current.order <= previous.order:
            return None
        return CHECKPOINT_ON_ENTRY.get(current)

    def create_checkpoint(
        self,
        section_name: str,
        specification: Optional[Specification],
        locked_at: Optional[datetime] = None,
    ) -> Optional[LockedSection]:
        """Build a checkpoint, or None when there is nothing to summarise yet."""
        if specification is None:
            return None
        summary = checkpoint_summary(section_name, specification)
        if not summary:
            return None
        return LockedSection(
            name=section_name,
            summary=summary,
            locked_at=locked_at or datetime.now(timezone.utc),
        )

    def supersede_checkpoint(
        self,
        existing: LockedSection,
        specification: Specification,
        locked_at: Optional[datetime] = None,
    ) -> Optional[LockedSection]:
        """Replacement checkpoint for an explicit redo; the old one is untouched."""
        replacement = self.create_checkpoint(existing.name, specification, locked_at)
        if replacement is None:
            return None
        return replacement.model_copy(update={"supersedes": existing.id})

    def checkpoint_for_transition(
        self,
        previous: ConversationStage,
        current: ConversationStage,
        specification: Optional[Specification],
        locked_sections: Sequence[LockedSection],
    ) -> Optional[LockedSection]:
        """Checkpoint to append after a turn, if any.

        A section already locked (and not superseded) is never locked again,
        so a stage that regresses and re-advances does not duplicate it.
        """
        section_name = self.should_create_checkpoint(previous, current)
        if section_name is None:
            return None
        if any(s.name == section_name for s in active_locked_sections(list(locked_sections))):
            return None
        checkpoint = self.create_checkpoint(section_name, specification)
        if checkpoint:
            log.info(
                "checkpoint_created",
                section=section_name,
                previous_stage=previous.value,
                stage=current.value,
            )
        return checkpoint

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def prune_history(
        self,
        history: Sequence[Message],
        locked_sections: Sequence[LockedSection] = (),
        window: Optional[int] = None,
    ) -> List[Message]:
        """Keep the last `window` messages, replacing older ones with a summary.

        The summary is a single system message listing every active locked
        section; it is omitted when nothing is locked.
        """
        window = window or self.config.history_window
        if len(history) <= window:
            return list(history)

        recent = list(history[-window:])
        active = active_locked_sections(list(locked_sections))
        if not active:
            return recent

        dropped = history[: len(history) - window]
        summary_message = Message(
            role=MessageRole.SYSTEM,
            content=format_locked_sections(active),
            timestamp=dropped[-1].timestamp,
            metadata={"synthetic": True},
        )
        return [summary_message] + recent


def format_locked_sections(sections: Sequence[LockedSection]) -> str:
    lines = [f"{s.name}: {s.summary}" for s in sections]
    return "\n".join([LOCKED_DECISIONS_HEADER] + lines)


def checkpoint_summary(section_name: str, specification: Specification) -> Optional[str]:
    summary = specification.plain_summary

    if section_name == PROBLEM_STATEMENT:
        if not summary.overview:
            return None
        return f"Problem: {summary.overview.split('.')[0].strip()}"

    if section_name == USERS_AND_SCOPE:
        parts = []
        if summary.target_users:
            parts.append(f"Users: {summary.target_users}")
        if summary.key_features:
            parts.append(f"Core features: {', '.join(summary.key_features[:3])}")
        return "; ".join(parts) or None

    if section_name == REQUIREMENTS:
        requirements = specification.formal_document.requirements
        if not requirements:
            return None
        parts = [f"{len(requirements)} requirements"]
        if summary.flows:
            parts.append(f"User flows: {'; '.join(summary.flows[:2])}")
        if summary.rules_and_constraints:
            parts.append(f"Rules: {'; '.join(summary.rules_and_constraints[:2])}")
        return "; ".join(parts)

    if section_name == FULL_SPECIFICATION:
        document = specification.formal_document
        return (
            f"Specification v{specification.version}: "
            f"{len(document.requirements)} requirements, "
            f"{len(document.non_functional_requirements)} non-functional requirements"
        )

    return None
