"""
Structured logging configuration using structlog.

Every state-engine event (session created, version written, error preserved)
is emitted as a structured event with the session id bound from context.
Output is JSON in production and a colored console in debug, with one log
file per process start under logs/.

Magic-link tokens are bearer credentials and contact details are personal
data, so both are masked before any renderer sees them.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, List, MutableMapping, Optional

import structlog
from structlog.typing import Processor

from specwizard.core.config import settings

LOG_FILE_PREFIX = "specwizard_"

REDACTED_KEYS = frozenset(
    {"token", "magic_link_token", "email", "phone", "api_key", "contact_info"}
)


def redact_sensitive(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that masks credentials and contact details."""
    for key in REDACTED_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and len(value) > 4:
            event_dict[key] = value[:4] + "..."
        elif value:
            event_dict[key] = "***"
    return event_dict


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Delete old log files, keeping only the N most recent."""
    log_files = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old_file in log_files[keep:]:
        try:
            os.remove(old_file)
        except OSError:
            pass  # another process may hold or have removed it


def configure_logging(
    log_files_to_keep: int = 5,
    logs_dir: Optional[Path] = None,
    level: Optional[int] = None,
) -> None:
    """Configure structlog for the application.

    Call this once at application startup, before any logging.

    Args:
        log_files_to_keep: Number of recent log files to retain (default: 5)
        logs_dir: Directory for log files (default: settings.data_dir/logs)
        level: Minimum log level (default: DEBUG when settings.debug, else INFO)

    Outputs:
        - Console (colored in debug, JSON otherwise)
        - File: <logs_dir>/specwizard_YYYYMMDD_HHMMSS.log
    """
    logs_dir = logs_dir or Path(settings.data_dir) / "logs"
    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO
    logs_dir.mkdir(parents=True, exist_ok=True)

    # keep-1 to make room for the file created below
    _cull_old_logs(logs_dir, keep=max(log_files_to_keep - 1, 0))

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"{LOG_FILE_PREFIX}{timestamp}.log"

    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
        redact_sensitive,
    ]

    if settings.debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    # Clear existing handlers so reconfiguration (tests, reloads) does not duplicate output
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from specwizard.core.logging import get_logger

        log = get_logger(__name__)
        log.info("session_created", session_id=session.id)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables included in all subsequent logs of this task.

        bind_context(session_id=session_id, request_id=request_id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables (call when a request completes)."""
    structlog.contextvars.clear_contextvars()
