"""
Health DTOs for the sink and overflow store probes.

Each backend reports healthy / error / disabled; the aggregate is
``disabled`` only when both backends are unconfigured, ``error`` when either
probe failed, otherwise ``healthy``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from .utils import utc_now

HealthState = Literal["healthy", "error", "disabled"]


class BackendHealth(BaseModel):
    status: HealthState
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def healthy(cls, message: str, **details: Any) -> "BackendHealth":
        return cls(status="healthy", message=message, details=details)

    @classmethod
    def error(cls, message: str, **details: Any) -> "BackendHealth":
        return cls(status="error", message=message, details=details)

    @classmethod
    def disabled(cls, message: str) -> "BackendHealth":
        return cls(status="disabled", message=message)


class OverallHealth(BaseModel):
    status: HealthState
    timestamp: datetime = Field(default_factory=utc_now)


class HealthStatus(BaseModel):
    sink: BackendHealth
    overflow: BackendHealth
    overall: OverallHealth


def aggregate_status(sink: BackendHealth, overflow: BackendHealth) -> HealthState:
    if sink.status == "error" or overflow.status == "error":
        return "error"
    if sink.status == "disabled" and overflow.status == "disabled":
        return "disabled"
    return "healthy"


def build_health(
    sink: BackendHealth, overflow: BackendHealth, *, now: Optional[datetime] = None
) -> HealthStatus:
    overall = OverallHealth(status=aggregate_status(sink, overflow), timestamp=now or utc_now())
    return HealthStatus(sink=sink, overflow=overflow, overall=overall)
