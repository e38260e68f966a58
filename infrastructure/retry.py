"""
Retry Logic Module

tenacity retry policy for outbound CRM calls. Waits grow exponentially
between min and max, the whole call is bounded in time, and only the
exception types named in the config trigger a retry; anything else (a 4xx,
a missing token) fails on the first attempt.
"""

from typing import Callable, Optional, TypeVar
from dataclasses import dataclass, field

from tenacity import (
    retry,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    retry_if_exception_type,
)

from .logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Retry policy for one client."""

    max_attempts: int = 3
    min_wait_seconds: float = 0.5
    max_wait_seconds: float = 5.0
    exponential_base: float = 2.0
    timeout_seconds: Optional[float] = 30.0

    # Only these exception types are retried
    retry_on: tuple = field(default_factory=lambda: (
        ConnectionError,
        TimeoutError,
    ))

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        """Policy from the CRM_RETRY_* / CRM_TIMEOUT_SECONDS settings."""
        from config import settings

        return cls(
            max_attempts=settings.CRM_RETRY_MAX_ATTEMPTS,
            min_wait_seconds=settings.CRM_RETRY_MIN_WAIT,
            max_wait_seconds=settings.CRM_RETRY_MAX_WAIT,
            timeout_seconds=settings.CRM_TIMEOUT_SECONDS,
        )


def create_retry_decorator(config: RetryConfig):
    """Build the tenacity decorator for a RetryConfig; the last error is re-raised."""
    stop = stop_after_attempt(config.max_attempts)
    if config.timeout_seconds:
        stop = stop | stop_after_delay(config.timeout_seconds)

    return retry(
        stop=stop,
        wait=wait_exponential(
            multiplier=config.exponential_base,
            min=config.min_wait_seconds,
            max=config.max_wait_seconds,
        ),
        retry=retry_if_exception_type(config.retry_on),
        before_sleep=_log_retry_attempt,
        reraise=True,
    )


def _log_retry_attempt(retry_state):
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retry_attempt",
        function=getattr(retry_state.fn, "__name__", "unknown"),
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
        error=str(error) if error else None,
        error_type=type(error).__name__ if error else None,
    )


def retry_crm_call(config: Optional[RetryConfig] = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying CRM API calls with exponential backoff.

    Example:
        @retry_crm_call(RetryConfig(max_attempts=3, retry_on=(CRMTransientError,)))
        def search_contacts(payload: dict) -> dict:
            return session.post(url, json=payload).json()
    """
    return create_retry_decorator(config or RetryConfig.from_settings())
