"""
Custom exceptions for relaylog.

Delivery errors are classified so the scheduler can decide between retrying
and giving up; configuration errors are the only ones raised to producers.
"""

from __future__ import annotations

from typing import Optional

import httpx


class RelayLogError(Exception):
    """Base error for relaylog."""

    pass


class ConfigurationError(RelayLogError):
    """Invalid or missing destination / credential configuration."""

    pass


class DeliveryError(RelayLogError):
    """A dispatch to the notification sink was rejected or never completed."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientDeliveryError(DeliveryError):
    """Rate limiting or network faults that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


class PermanentDeliveryError(DeliveryError):
    """Any other sink rejection; never retried."""

    pass


class OverflowUploadError(RelayLogError):
    """Oversized content could not be externalized to the overflow store."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SizeLimitError(OverflowUploadError):
    """Serialized content exceeds the configured maximum object size."""

    pass


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Seconds advertised by a 429 response (header first, then JSON body)."""
    header = response.headers.get("retry-after")
    if header:
        try:
            return max(0.0, float(header))
        except ValueError:
            pass
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("retry_after") is not None:
        try:
            return max(0.0, float(body["retry_after"]))
        except (TypeError, ValueError):
            return None
    return None


def map_http_error(e: Exception) -> DeliveryError:
    if isinstance(e, httpx.HTTPStatusError):
        response = e.response
        status = response.status_code
        if status == 429:
            return TransientDeliveryError(
                "Rate limited by sink (HTTP 429)",
                status_code=429,
                retry_after=parse_retry_after(response),
            )
        detail = response.text.strip()[:200] or response.reason_phrase
        return PermanentDeliveryError(
            f"Sink rejected payload (HTTP {status}): {detail}", status_code=status
        )
    if isinstance(e, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return TransientDeliveryError(f"{type(e).__name__}: {e}")
    if isinstance(e, DeliveryError):
        return e
    return PermanentDeliveryError(f"{type(e).__name__}: {e}")
