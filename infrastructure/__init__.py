"""
Infrastructure Module for the Voyage Passport API

Provides observability and resilience for outbound calls:
- Structured logging with structlog
- Prometheus metrics collection
- Retry logic with tenacity
"""

from .logging import (
    get_logger,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
    log_external_call,
    LogContext,
)
from .metrics import (
    MetricsCollector,
    metrics,
    track_external_call,
)
from .retry import (
    RetryConfig,
    create_retry_decorator,
    retry_crm_call,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
    "log_external_call",
    "LogContext",
    # Metrics
    "MetricsCollector",
    "metrics",
    "track_external_call",
    # Retry
    "RetryConfig",
    "create_retry_decorator",
    "retry_crm_call",
]
