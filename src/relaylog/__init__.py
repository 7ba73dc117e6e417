"""
relaylog

Delivers structured log records to a rate-limited webhook sink and offloads
oversized fields to a repository-backed overflow store, leaving a link in
their place.

Usage:
    from relaylog import create_logger

    log = create_logger(sink={"webhook_url": "https://discord.com/api/webhooks/..."})
    result = await log.error("Payment sync failed", error=exc, data=batch)
    assert result.success
"""

from .config import (
    OverflowSettings,
    RateLimitSettings,
    RelayLogSettings,
    SinkLimits,
    SinkSettings,
    load_settings,
)
from .delivery import RequestScheduler, RetryPolicy
from .errors import (
    ConfigurationError,
    DeliveryError,
    OverflowUploadError,
    PermanentDeliveryError,
    RelayLogError,
    SizeLimitError,
    TransientDeliveryError,
)
from .health import BackendHealth, HealthStatus
from .logger import ContextLogger, RelayLogger, Timer, TimerResult, create_logger
from .models import (
    ContentDecision,
    DeliveryResult,
    LogEntry,
    LogLevel,
    Notification,
    NotificationField,
    OverflowObject,
)
from .overflow import ContentRouter, OverflowStore
from .sink import PayloadBuilder, WebhookSink

__version__ = "0.1.0"
__all__ = [
    "create_logger",
    "RelayLogger",
    "ContextLogger",
    "Timer",
    "TimerResult",
    "RelayLogSettings",
    "SinkSettings",
    "SinkLimits",
    "RateLimitSettings",
    "OverflowSettings",
    "load_settings",
    "RequestScheduler",
    "RetryPolicy",
    "ContentRouter",
    "OverflowStore",
    "PayloadBuilder",
    "WebhookSink",
    "LogEntry",
    "LogLevel",
    "Notification",
    "NotificationField",
    "DeliveryResult",
    "ContentDecision",
    "OverflowObject",
    "BackendHealth",
    "HealthStatus",
    "RelayLogError",
    "ConfigurationError",
    "DeliveryError",
    "TransientDeliveryError",
    "PermanentDeliveryError",
    "OverflowUploadError",
    "SizeLimitError",
]
