"""Delivery pipeline: paced FIFO scheduler plus retry/backoff policy.

- RequestScheduler: single drain task, pacing interval, head-of-line retries
- RetryPolicy: retryable classification and jittered backoff
"""

from .policy import RetryPolicy, default_retry_classifier
from .scheduler import RequestScheduler, SchedulerClosedError

__all__ = [
    "RequestScheduler",
    "SchedulerClosedError",
    "RetryPolicy",
    "default_retry_classifier",
]
