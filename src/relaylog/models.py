"""
Immutable records passed through the delivery pipeline.

LogEntry and Notification are producer inputs; DeliveryResult, ContentDecision
and OverflowObject are pipeline outputs. All are frozen so they are safe to
hand across tasks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from .utils import utc_now


class LogLevel(str, Enum):
    """Severity levels understood by the payload builder."""

    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"
    DEBUG = "DEBUG"
    SUCCESS = "SUCCESS"

    @classmethod
    def coerce(cls, value: "LogLevel | str") -> "LogLevel | str":
        """Known levels become enum members; anything else stays upper-cased text."""
        if isinstance(value, cls):
            return value
        text = str(value).upper()
        if text == "WARNING":
            text = "WARN"
        try:
            return cls(text)
        except ValueError:
            return text


def level_name(level: "LogLevel | str") -> str:
    return level.value if isinstance(level, LogLevel) else str(level)


@dataclass(frozen=True)
class LogEntry:
    """One unit of work submitted for delivery.

    The completion future lives beside the entry inside the scheduler, never
    on it, so an entry can be re-dispatched without mutation.

    Attributes:
        level: Severity (LogLevel or an upper-cased custom level)
        function_name: Producer function, used for titles and overflow file names
        file_name: Producer module, used for the author line and file names
        message: Free text rendered as the block description
        data/error/response: Optional payload fields, routed inline or to overflow
        metadata: Extra key/values, routed like the payload fields
        timestamp: Creation time (UTC)
    """

    level: "LogLevel | str"
    function_name: str
    file_name: str
    message: str
    data: Any = None
    error: Any = None
    response: Any = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class NotificationField:
    name: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class Notification:
    """Free-form notification block delivered through the same queue as log entries."""

    title: str = "🔄 System Notification"
    description: str = ""
    fields: Sequence[NotificationField] = ()
    color: int = 5814783
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class DeliveryResult:
    """Terminal outcome of one entry. Producers branch on ``success``."""

    success: bool
    result: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    attempts: int = 0

    @classmethod
    def ok(cls, result: Any, attempts: int) -> "DeliveryResult":
        return cls(success=True, result=result, attempts=attempts)

    @classmethod
    def failed(cls, exc: BaseException, attempts: int) -> "DeliveryResult":
        return cls(success=False, error=str(exc), error_type=type(exc).__name__, attempts=attempts)


@dataclass(frozen=True)
class OverflowObject:
    """Record of content written to the overflow store."""

    path: str
    filename: str
    size_bytes: int
    sha: Optional[str]
    raw_url: str
    web_url: Optional[str]
    uploaded_at: datetime


@dataclass(frozen=True)
class ContentDecision:
    """Inline-or-referenced rendering of a single payload field."""

    inline: bool
    text: str
    length: int
    overflow_ref: Optional[OverflowObject] = None
    upload_error: Optional[str] = None
