"""
Shared test fixtures.

Every test that touches the store gets its own temporary SQLite database.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from specwizard.domain.models.extraction import (
    FeaturesExtraction,
    IntegrationsExtraction,
    NonFunctionalExtraction,
    OverviewExtraction,
    UsersExtraction,
    WorkflowsExtraction,
)
from specwizard.llm.router import GenerationRouter, RateLimiter
from specwizard.persistence.database import init_database
from specwizard.services.session_store import SessionStore
from specwizard.services.specification_ledger import SpecificationLedger


class FakeClock:
    """Deterministic UTC clock that advances one second per reading."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
async def test_db():
    """Create and initialize test database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        from specwizard.core import config

        original_path = config.settings.database_path
        config.settings.database_path = db_path

        with patch("specwizard.persistence.database.settings", config.settings):
            yield db_path

        config.settings.database_path = original_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def session_store(test_db, clock):
    """Session store over the test database with a deterministic clock."""
    return SessionStore(str(test_db), clock=clock)


@pytest.fixture
def build_spec():
    """Apply extractions in order to a fresh session's specification."""

    def _build(session_id: str = "session-1", *extractions, current=None):
        ledger = SpecificationLedger()
        spec = current
        for extracted in extractions:
            spec = ledger.update_specification(spec, extracted, session_id=session_id)
        return spec

    return _build


@pytest.fixture
def complete_extractions():
    """Facts that cover every core topic without vague or conflicting wording."""
    return [
        OverviewExtraction(overview="An online booking system for a hair salon"),
        UsersExtraction(target_users="Salon customers and stylists"),
        FeaturesExtraction(
            features=["book appointments", "store customer data", "send reminders"]
        ),
        IntegrationsExtraction(integrations=["Stripe"]),
        WorkflowsExtraction(flows=["choose a stylist then pick a time"]),
        NonFunctionalExtraction(notes=["Pages should load fast"]),
    ]


class ScriptedClient:
    """Generation client that streams canned replies, or fails with `error`."""

    def __init__(self, replies=("Thanks! Who will be using it?",), error=None):
        self.replies = list(replies)
        self.error = error
        self.calls = []

    async def stream(self, messages, system=None):
        self.calls.append({"messages": messages, "system": system})
        if self.error is not None:
            raise self.error
        reply = self.replies[min(len(self.calls), len(self.replies)) - 1]
        for word in reply.split(" "):
            yield word + " "


@pytest.fixture
def scripted_client():
    return ScriptedClient()


@pytest.fixture
def generation_router(scripted_client):
    """Router over a single scripted provider with no fallback."""
    return GenerationRouter(
        {"anthropic": scripted_client},
        RateLimiter(max_requests=1000),
        primary="anthropic",
        fallback="",
    )

