"""Tests for the exception hierarchy and error classification."""

import httpx
import pytest

from specwizard.core.exceptions import (
    ConfigurationError,
    DuplicateRecordError,
    ErrorCategory,
    GenerationRateLimitError,
    GenerationTimeoutError,
    MagicLinkNotFoundError,
    NetworkError,
    PersistenceError,
    SessionNotFoundError,
    SpecWizardError,
    SpecificationVersionConflictError,
    ValidationError,
    classify_error,
)


@pytest.mark.parametrize(
    "error, category",
    [
        (NetworkError("offline"), ErrorCategory.NETWORK),
        (GenerationTimeoutError("slow", provider="anthropic"), ErrorCategory.GENERATION_PROVIDER),
        (GenerationRateLimitError("busy"), ErrorCategory.GENERATION_PROVIDER),
        (SpecificationVersionConflictError("s1", 2, 3), ErrorCategory.PERSISTENCE),
        (DuplicateRecordError("taken"), ErrorCategory.PERSISTENCE),
        (ValidationError("bad"), ErrorCategory.VALIDATION),
        (SessionNotFoundError("gone"), ErrorCategory.NOT_FOUND),
        (MagicLinkNotFoundError("gone"), ErrorCategory.NOT_FOUND),
        (ConfigurationError("no key"), ErrorCategory.CONFIGURATION),
        (httpx.ConnectError("refused"), ErrorCategory.NETWORK),
        (RuntimeError("boom"), ErrorCategory.UNKNOWN),
    ],
)
def test_classify_error(error, category):
    assert classify_error(error) == category


def test_all_application_errors_share_base():
    for error in (
        NetworkError("x"),
        PersistenceError("x"),
        ValidationError("x"),
        SessionNotFoundError("x"),
    ):
        assert isinstance(error, SpecWizardError)
        assert error.message == "x"


def test_validation_error_keeps_itemised_errors():
    error = ValidationError("Submission is not ready", errors=["Name is required"])
    assert error.errors == ["Name is required"]
    assert ValidationError("no items").errors == []


def test_version_conflict_names_both_versions():
    error = SpecificationVersionConflictError("session-1", attempted=2, current=4)
    assert error.attempted == 2
    assert error.current == 4
    assert "session-1" in error.message
