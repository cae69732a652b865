"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from specwizard.core.config import settings, wizard_config
from specwizard.llm.router import GenerationRouter, RateLimiter, build_generation_router
from specwizard.persistence.repositories import SubmissionRepository
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.conversation_service import ConversationService
from specwizard.services.conversation_stage import ConversationStageEngine
from specwizard.services.follow_up_service import AskedTopicTracker, FollowUpPlanner
from specwizard.services.magic_link import MagicLinkResolver
from specwizard.services.session_store import SessionStore
from specwizard.services.submission_service import SubmissionService


def get_session_store() -> SessionStore:
    """FastAPI dependency injection for SessionStore.

    Each request gets a store bound to the configured database path, with
    the tracker and stage engine configured from wizard_config.yaml.
    """
    return SessionStore(
        str(settings.database_path),
        tracker=CompletenessTracker(wizard_config.completeness),
        stage_engine=ConversationStageEngine(wizard_config.conversation),
    )


SessionStoreDep = Annotated[SessionStore, Depends(get_session_store)]


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Process-wide rate limiter shared by every session."""
    return RateLimiter.from_config(wizard_config.rate_limit)


@lru_cache(maxsize=1)
def get_generation_router() -> GenerationRouter:
    """Cached generation router.

    Provider clients are created once per process; providers without an API
    key are left out and the router falls back around them.
    """
    return build_generation_router(get_rate_limiter())


@lru_cache(maxsize=1)
def get_follow_up_planner() -> FollowUpPlanner:
    """Planner whose asked-topic record lives for the process."""
    return FollowUpPlanner(AskedTopicTracker())


GenerationRouterDep = Annotated[GenerationRouter, Depends(get_generation_router)]
FollowUpPlannerDep = Annotated[FollowUpPlanner, Depends(get_follow_up_planner)]


def get_magic_link_resolver(session_store: SessionStoreDep) -> MagicLinkResolver:
    return MagicLinkResolver(session_store, token_bytes=wizard_config.magic_link.token_bytes)


def get_submission_service(session_store: SessionStoreDep) -> SubmissionService:
    return SubmissionService(session_store, SubmissionRepository(session_store.db_path))


def get_conversation_service(
    session_store: SessionStoreDep,
    router: GenerationRouterDep,
    planner: FollowUpPlannerDep,
) -> ConversationService:
    return ConversationService(session_store, router, planner=planner)


MagicLinkResolverDep = Annotated[MagicLinkResolver, Depends(get_magic_link_resolver)]
SubmissionServiceDep = Annotated[SubmissionService, Depends(get_submission_service)]
ConversationServiceDep = Annotated[
    ConversationService, Depends(get_conversation_service)
]
