from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import BackoffStrategy, RateLimitSettings
from ..errors import TransientDeliveryError


def default_retry_classifier(exc: BaseException) -> bool:
    """Only rate limiting and network faults are worth another attempt."""
    return isinstance(exc, TransientDeliveryError)


@dataclass
class RetryPolicy:
    """Retry decisions and backoff delays for sink dispatches.

    ``attempt`` is the number of retries already made for the entry (0 on the
    first failure), so an entry is sent at most ``max_retries + 1`` times.

    Delay: a 429 with an advertised retry-after waits that long; otherwise
    ``retry_multiplier ** attempt * base_delay_ms`` (exponential) or
    ``base_delay_ms`` (fixed). ``max_delay_ms`` caps both, advertised
    retry-after included. Uniform jitter in ``[0, max_jitter_ms]`` is
    always added.
    """

    max_retries: int = 3
    backoff: BackoffStrategy = "exponential"
    retry_multiplier: float = 2.0
    base_delay_ms: int = 1000
    max_jitter_ms: int = 1000
    max_delay_ms: Optional[int] = None
    classify_retryable: Callable[[BaseException], bool] = field(
        default=default_retry_classifier
    )

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> "RetryPolicy":
        return cls(
            max_retries=settings.max_retries,
            backoff=settings.retry_backoff,
            retry_multiplier=settings.retry_multiplier,
            base_delay_ms=settings.base_delay_ms,
            max_jitter_ms=settings.max_jitter_ms,
            max_delay_ms=settings.max_delay_ms,
        )

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return attempt < self.max_retries and self.classify_retryable(error)

    def next_backoff_ms(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1``, without jitter."""
        if self.backoff == "fixed":
            delay = float(self.base_delay_ms)
        else:
            delay = (self.retry_multiplier**attempt) * self.base_delay_ms
        if self.max_delay_ms is not None:
            delay = min(delay, float(self.max_delay_ms))
        return delay

    def delay_for(self, error: BaseException, attempt: int) -> float:
        """Seconds to wait before the next attempt."""
        retry_after = getattr(error, "retry_after", None)
        if isinstance(error, TransientDeliveryError) and retry_after is not None:
            delay_ms = retry_after * 1000.0
            if self.max_delay_ms is not None:
                delay_ms = min(delay_ms, float(self.max_delay_ms))
        else:
            delay_ms = self.next_backoff_ms(attempt)
        if self.max_jitter_ms > 0:
            delay_ms += random.uniform(0, self.max_jitter_ms)
        return max(0.0, delay_ms / 1000.0)
