"""
Health check endpoints.

/health reports the record store and the generation providers; /health/live
and /health/ready are the checks a process supervisor polls.
"""

from fastapi import APIRouter, HTTPException
import structlog

from specwizard.api.dependencies import GenerationRouterDep
from specwizard.core.config import settings
from specwizard.llm.router import GenerationRouter
from specwizard.persistence.database import check_database_health

log = structlog.get_logger(__name__)

router = APIRouter()

VERSION = "0.1.0"


def generation_health(generation_router: GenerationRouter) -> dict:
    """Providers the router can use.

    With no provider every reply is the canned fallback, which keeps
    sessions usable, so this is reported as degraded rather than unhealthy.
    """
    providers = sorted(generation_router.clients)
    return {
        "status": "available" if providers else "degraded",
        "providers": providers,
        "selected": generation_router.select_provider(),
    }


@router.get("/health")
async def health_check(generation_router: GenerationRouterDep):
    """Overall status follows the database; generation is informational."""
    db_health = await check_database_health()

    return {
        "status": "healthy" if db_health["status"] == "healthy" else "unhealthy",
        "version": VERSION,
        "debug": settings.debug,
        "components": {
            "database": db_health,
            "generation": generation_health(generation_router),
        },
    }


@router.get("/health/live")
async def liveness():
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness():
    """503 until the record store answers."""
    db_health = await check_database_health()

    if db_health["status"] != "healthy":
        log.warning("readiness_check_failed", error=db_health.get("error"))
        raise HTTPException(status_code=503, detail="Database not ready")

    return {"status": "ready"}
