"""
Structured Logging Module

structlog setup for the Voyage Passport API. Every event carries the
request's correlation ID (echoed to clients as X-Request-ID) so a passport
or reservations request can be followed through its CRM and CMS calls.
"""

import os
import sys
import time
import uuid
import logging
from typing import Any, Dict, Optional, TextIO
from contextvars import ContextVar
from functools import wraps

import structlog

SERVICE_NAME = "voyage-passport"

# Correlation ID of the request being handled
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# Log files opened by configure_logging, by path; reconfiguring reuses the handle
_log_files: Dict[str, TextIO] = {}


def _new_correlation_id() -> str:
    return uuid.uuid4().hex[:8]


def get_correlation_id() -> str:
    """Correlation ID bound to the current request, or a fresh one outside requests."""
    return correlation_id_var.get() or _new_correlation_id()


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation ID (the caller's X-Request-ID when given) and return it."""
    cid = (correlation_id or "").strip() or _new_correlation_id()
    correlation_id_var.set(cid)
    return cid


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structlog for the service.

    Args:
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines when True; human-readable console output otherwise
        log_file: Append to this file instead of writing to stdout
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_correlation_id,
        _add_service_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # No ANSI colors in log files
        processors.append(structlog.dev.ConsoleRenderer(colors=log_file is None))

    if log_file:
        logger_factory = structlog.WriteLoggerFactory(file=_open_log_file(log_file))
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stdout)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def _open_log_file(path: str) -> TextIO:
    handle = _log_files.get(path)
    if handle is None or handle.closed:
        handle = open(path, "a", encoding="utf-8")
        _log_files[path] = handle
    return handle


def _add_correlation_id(logger, method_name, event_dict):
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def _add_service_info(logger, method_name, event_dict):
    event_dict["service"] = SERVICE_NAME
    event_dict["environment"] = os.getenv("ENVIRONMENT", "development")
    return event_dict


def get_logger(name: str = "voyage_passport") -> Any:
    """Structured logger for a component (e.g. "hubspot_client")."""
    return structlog.get_logger(name)


class LogContext:
    """
    Bind fields to every event logged inside the block.

    Example:
        with LogContext(contact_id="501"):
            logger.info("tier_assessed", tier="Explorer")
    """

    def __init__(self, **context):
        self.context = context

    def __enter__(self):
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *exc_info):
        structlog.contextvars.unbind_contextvars(*self.context)


def log_external_call(service: str, operation: str):
    """
    Log an outbound call as started/completed/failed events with its duration.

    Events are named after the service ("hubspot_call_completed"); failures
    are logged and re-raised unchanged.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(f"{service}_client")
            started = time.perf_counter()
            logger.info(f"{service}_call_started", operation=operation)

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{service}_call_failed",
                    operation=operation,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            logger.info(
                f"{service}_call_completed",
                operation=operation,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                has_result=bool(result),
            )
            return result

        return wrapper
    return decorator
