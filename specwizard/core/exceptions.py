"""
Custom exception hierarchy for the specification wizard.

All application exceptions inherit from SpecWizardError. Every concrete
error belongs to one ErrorCategory; anything raised from outside the
hierarchy is classified as UNKNOWN.
"""

from enum import Enum
from typing import List, Optional


class SpecWizardError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ErrorCategory(str, Enum):
    """Error taxonomy used for logging and HTTP mapping."""

    NETWORK = "network"
    GENERATION_PROVIDER = "generation_provider"
    PERSISTENCE = "persistence"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(SpecWizardError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# Network Errors
# =============================================================================


class NetworkError(SpecWizardError):
    """Transport failure or timeout talking to a remote service."""

    pass


# =============================================================================
# Text Generation Errors
# =============================================================================


class GenerationProviderError(SpecWizardError):
    """The text-generation provider failed or refused the request."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class GenerationTimeoutError(GenerationProviderError):
    """Generation call timed out."""

    pass


class GenerationRateLimitError(GenerationProviderError):
    """Generation provider or local limiter rejected the request."""

    pass


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(SpecWizardError):
    """Durable store read or write failed."""

    pass


class SpecificationVersionConflictError(PersistenceError):
    """A specification version was written against a stale current version."""

    def __init__(self, session_id: str, attempted: int, current: int):
        self.session_id = session_id
        self.attempted = attempted
        self.current = current
        super().__init__(
            f"Specification version {attempted} for session {session_id} "
            f"conflicts with stored version {current}"
        )


class DuplicateRecordError(PersistenceError):
    """A unique key (reference number, token, id) is already taken."""

    pass


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(SpecWizardError):
    """Input validation failed.

    Carries one message per offending field so callers can show them
    individually instead of a single opaque failure.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        super().__init__(message)


# =============================================================================
# Not Found Errors
# =============================================================================


class NotFoundError(SpecWizardError):
    """Requested entity does not exist."""

    pass


class SessionNotFoundError(NotFoundError):
    """Session does not exist."""

    pass


class MagicLinkNotFoundError(NotFoundError):
    """Magic link token is unknown or has been replaced."""

    pass


class SubmissionNotFoundError(NotFoundError):
    """Submission does not exist."""

    pass


_CATEGORY_BY_TYPE = (
    (NetworkError, ErrorCategory.NETWORK),
    (GenerationProviderError, ErrorCategory.GENERATION_PROVIDER),
    (PersistenceError, ErrorCategory.PERSISTENCE),
    (ValidationError, ErrorCategory.VALIDATION),
    (NotFoundError, ErrorCategory.NOT_FOUND),
    (ConfigurationError, ErrorCategory.CONFIGURATION),
)


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map an exception onto the error taxonomy.

    Transport errors raised by httpx count as NETWORK even when they escape
    unwrapped; everything unrecognised is UNKNOWN.
    """
    for exc_type, category in _CATEGORY_BY_TYPE:
        if isinstance(exc, exc_type):
            return category

    import httpx

    if isinstance(exc, httpx.TransportError):
        return ErrorCategory.NETWORK

    return ErrorCategory.UNKNOWN
