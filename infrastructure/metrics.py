"""
Prometheus Metrics Module

Provides metrics collection for outbound CRM/CMS calls, tier assessments
and reservation normalization.
"""

import time
from functools import wraps
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Create a custom registry for this application
REGISTRY = CollectorRegistry()

# Outbound call metrics
external_calls = Counter(
    "voyage_passport_external_calls_total",
    "Total number of outbound CRM/CMS calls",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

external_latency = Histogram(
    "voyage_passport_external_latency_seconds",
    "Outbound CRM/CMS call latency in seconds",
    ["service", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# Business metrics
tier_assessments = Counter(
    "voyage_passport_tier_assessments_total",
    "Tier assessments served, by resulting tier",
    ["tier"],
    registry=REGISTRY,
)

reservations_normalized = Counter(
    "voyage_passport_reservations_normalized_total",
    "Reservations produced by the normalizer, by status",
    ["status"],
    registry=REGISTRY,
)

deals_skipped = Counter(
    "voyage_passport_deals_skipped_total",
    "Raw deals excluded from normalization",
    ["reason"],
    registry=REGISTRY,
)

experience_scrapes = Counter(
    "voyage_passport_experience_scrapes_total",
    "Destination experience scrape outcomes",
    ["result"],  # result: success, failure
    registry=REGISTRY,
)


class MetricsCollector:
    """
    Centralized metrics collection for the application.

    Provides a convenient interface for recording metrics from the API
    layer and the outbound clients.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def get_metrics(self) -> bytes:
        """Get the current metrics in Prometheus format."""
        if not self.enabled:
            return b""
        return generate_latest(REGISTRY)

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def record_external_call(self, service: str, operation: str, success: bool, duration: float):
        """Record an outbound CRM/CMS call."""
        if not self.enabled:
            return

        status = "success" if success else "failure"
        external_calls.labels(service=service, operation=operation, status=status).inc()
        external_latency.labels(service=service, operation=operation).observe(duration)

    def record_tier_assessment(self, tier_name: Optional[str]):
        """Record a served tier assessment."""
        if not self.enabled:
            return
        tier_assessments.labels(tier=tier_name or "none").inc()

    def record_normalization(self, result):
        """Record reservation statuses and skipped deals from a NormalizationResult."""
        if not self.enabled:
            return

        for reservation in result.reservations:
            reservations_normalized.labels(status=reservation.status.value).inc()
        for record in result.skipped:
            deals_skipped.labels(reason=record.reason).inc()

    def record_experience_scrape(self, success: bool):
        """Record a destination experience scrape."""
        if not self.enabled:
            return
        experience_scrapes.labels(result="success" if success else "failure").inc()


# Global metrics collector instance
metrics = MetricsCollector()


def track_external_call(service: str, operation: str):
    """Decorator to automatically track outbound call metrics."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                metrics.record_external_call(service, operation, True, time.time() - start_time)
                return result
            except Exception:
                metrics.record_external_call(service, operation, False, time.time() - start_time)
                raise
        return wrapper
    return decorator
