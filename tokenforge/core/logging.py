"""
Structured logging configuration using structlog.

Log line layout:
{
    "ts": "2026-10-19T04:30:00.123456Z",
    "level": "info",
    "service": "tokenforge",
    "event": "credential.token_issued",
    "logger": "tokenforge.issuer.credential_issuer",
    ...additional context...
}

Key material, cipher keys, signatures, and tokens must never be passed
as log context.
"""
import logging
from typing import Any

import structlog

SERVICE_NAME = "tokenforge"


def add_service_name(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Add service name to all log entries."""
    event_dict["service"] = SERVICE_NAME
    return event_dict


def add_logger_name(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Move the bound logger name into the entry."""
    name = event_dict.pop("logger_name", None)
    if name:
        event_dict["logger"] = name
    return event_dict


def setup_logging(json_output: bool = True, level: str = "INFO") -> None:
    """
    Configure structured logging.

    Args:
        json_output: If True, output JSON logs. If False, use console format.
        level: Minimum level name, e.g. "INFO" or "DEBUG".
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_service_name,
        add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", key="ts"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors = shared_processors + [structlog.processors.JSONRenderer()]
    else:
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=numeric_level)


def get_logger(name: str) -> Any:
    """Get a structlog logger bound to a module name."""
    return structlog.get_logger(logger_name=name)
