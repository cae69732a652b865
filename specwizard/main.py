"""
FastAPI application entry point.

Run with: uvicorn specwizard.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from specwizard.core.config import settings, wizard_config
from specwizard.core.exceptions import ConfigurationError
from specwizard.core.logging import configure_logging, get_logger, bind_context, clear_context
from specwizard.persistence.database import init_database
from specwizard.llm.client import PROVIDER_DEFAULTS
from specwizard.api.routes import health, sessions, submissions
from specwizard.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Uses the caller's X-Request-ID when present, else a new UUID4
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


def check_generation_providers() -> list[str]:
    """
    Report generation providers that lack an API key.

    A missing key is not fatal: the router falls back to the other provider,
    and to a canned reply when none is available. An unknown provider name
    is a deployment mistake and stops startup.

    Raises:
        ConfigurationError: If a configured provider name is not supported
    """
    unknown = [
        p
        for p in (settings.llm_primary_provider, settings.llm_fallback_provider)
        if p and p not in PROVIDER_DEFAULTS
    ]
    if unknown:
        raise ConfigurationError(
            f"Unknown LLM provider(s): {', '.join(unknown)}. "
            f"Supported providers: {', '.join(PROVIDER_DEFAULTS)}"
        )

    keys = {
        "anthropic": settings.anthropic_api_key,
        "openai": settings.openai_api_key,
    }
    missing = []
    for provider in (settings.llm_primary_provider, settings.llm_fallback_provider):
        if provider and not keys.get(provider):
            missing.append(provider)

    if missing:
        log.warning("generation_providers_unconfigured", providers=missing)
    return missing


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Validates providers and creates the record store before serving.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
        primary_provider=settings.llm_primary_provider,
        fallback_provider=settings.llm_fallback_provider,
        min_messages_for_completion=wizard_config.conversation.min_messages_for_completion,
    )

    check_generation_providers()
    await init_database()

    log.info("application_started")

    yield

    log.info("application_shutting_down")


app = FastAPI(
    title="Specification Wizard",
    description="Conversational requirements wizard: session and specification state engine",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(sessions.router)
app.include_router(submissions.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "Specification Wizard", "version": "0.1.0", "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "specwizard.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
