"""
Producer-facing logger.

One RelayLogger owns one delivery queue, pacing clock, sink client and
overflow client; there is no process-wide default instance. Build one with
:func:`create_logger` and keep it for the life of the application.

Usage:

    log = create_logger(sink={"webhook_url": url}, overflow={"token": t, "owner": o, "repo": r})
    async with log:
        result = await log.info("Nightly sync finished", data=summary)
        if not result.success:
            ...

Logging methods are plain functions returning an awaitable future, so entries
are queued in call order even when the caller does not await immediately.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import httpx
from loguru import logger

from .config import RelayLogSettings, load_settings
from .delivery import RequestScheduler, RetryPolicy
from .health import HealthStatus, build_health
from .models import DeliveryResult, LogEntry, LogLevel, Notification, NotificationField
from .overflow import ContentRouter, OverflowStore
from .sink import PayloadBuilder, WebhookSink
from .utils import caller_info, generate_id, iso_timestamp, utc_now

Item = Union[LogEntry, Notification]


class RelayLogger:
    def __init__(
        self,
        settings: Optional[RelayLogSettings] = None,
        *,
        name: str = "relaylog",
        http_client: Optional[httpx.AsyncClient] = None,
        sink: Optional[WebhookSink] = None,
        store: Optional[OverflowStore] = None,
    ):
        s = settings or load_settings()
        self._settings = s
        self._name = name
        self._sink = sink or WebhookSink(s.sink, client=http_client)
        self._store = store or OverflowStore(s.overflow, client=http_client)
        self._router = ContentRouter(
            self._store,
            content_threshold=s.overflow.content_threshold,
            inline_limit=s.overflow.inline_limit,
            field_value_limit=s.sink.limits.field_value,
        )
        self._payloads = PayloadBuilder(s.sink, self._router)
        self._scheduler: RequestScheduler[Item] = RequestScheduler(
            self._dispatch,
            min_interval=s.rate_limit.min_interval_ms / 1000.0,
            retry_policy=RetryPolicy.from_settings(s.rate_limit),
            scheduler_id=name,
        )

    # ---------- context management

    async def __aenter__(self) -> "RelayLogger":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def join(self) -> None:
        """Wait until everything queued so far has been delivered or failed."""
        await self._scheduler.join()

    async def aclose(self) -> None:
        await self._scheduler.aclose()
        await self._sink.aclose()
        await self._store.aclose()

    # ---------- accessors

    @property
    def settings(self) -> RelayLogSettings:
        return self._settings

    @property
    def sink(self) -> WebhookSink:
        return self._sink

    @property
    def store(self) -> OverflowStore:
        return self._store

    @property
    def router(self) -> ContentRouter:
        return self._router

    @property
    def scheduler(self) -> RequestScheduler[Item]:
        return self._scheduler

    # ---------- configuration

    def configure(self, **sections: Mapping[str, Any]) -> "RelayLogger":
        """Override settings field by field, e.g. ``configure(rate_limit={"max_retries": 5})``.

        Everything is validated before any component changes, so a
        ConfigurationError leaves the logger untouched.
        """
        s = self._settings.merged(**sections)
        self._settings = s
        self._sink.configure(s.sink)
        self._store.configure(s.overflow)
        self._router.content_threshold = s.overflow.content_threshold
        self._router.inline_limit = s.overflow.inline_limit
        self._router.field_value_limit = s.sink.limits.field_value
        self._payloads.configure(s.sink)
        self._scheduler.reconfigure(
            min_interval=s.rate_limit.min_interval_ms / 1000.0,
            retry_policy=RetryPolicy.from_settings(s.rate_limit),
        )
        logger.debug(f"Logger {self._name} reconfigured: {', '.join(sections) or 'no changes'}")
        return self

    # ---------- core API

    def enqueue(self, entry: LogEntry) -> asyncio.Future[DeliveryResult]:
        return self._scheduler.enqueue(entry)

    def log(
        self,
        level: Union[LogLevel, str] = LogLevel.INFO,
        message: str = "No message provided",
        *,
        data: Any = None,
        error: Any = None,
        response: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
        function_name: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> asyncio.Future[DeliveryResult]:
        if not function_name or not file_name:
            caller = caller_info()
            function_name = function_name or caller["function"]
            file_name = file_name or caller["file"]
        entry = LogEntry(
            level=LogLevel.coerce(level),
            function_name=function_name,
            file_name=file_name,
            message=message,
            data=data,
            error=error,
            response=response,
            metadata=dict(metadata or {}),
        )
        return self._scheduler.enqueue(entry)

    def info(self, message: str, data: Any = None, metadata: Optional[Mapping] = None):
        return self.log(LogLevel.INFO, message, data=data, metadata=metadata)

    def warn(self, message: str, data: Any = None, metadata: Optional[Mapping] = None):
        return self.log(LogLevel.WARN, message, data=data, metadata=metadata)

    warning = warn

    def error(
        self,
        message: str,
        error: Any = None,
        data: Any = None,
        metadata: Optional[Mapping] = None,
    ):
        return self.log(LogLevel.ERROR, message, error=error, data=data, metadata=metadata)

    def debug(self, message: str, data: Any = None, metadata: Optional[Mapping] = None):
        return self.log(LogLevel.DEBUG, message, data=data, metadata=metadata)

    def success(
        self,
        message: str,
        data: Any = None,
        response: Any = None,
        metadata: Optional[Mapping] = None,
    ):
        return self.log(
            LogLevel.SUCCESS, message, data=data, response=response, metadata=metadata
        )

    def notify(
        self,
        title: str = "🔄 System Notification",
        description: str = "",
        fields: Sequence[Union[NotificationField, Mapping[str, Any]]] = (),
        color: int = 5814783,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> asyncio.Future[DeliveryResult]:
        """Queue a free-form notification; paced and ordered with log entries."""
        note = Notification(
            title=title,
            description=description,
            fields=tuple(
                f if isinstance(f, NotificationField) else NotificationField(**f) for f in fields
            ),
            color=color,
            username=username,
            avatar_url=avatar_url,
        )
        return self._scheduler.enqueue(note)

    # ---------- helpers

    def start_timer(self, label: str) -> "Timer":
        return Timer(self, label)

    async def batch(
        self,
        items: Iterable[Mapping[str, Any]],
        common_metadata: Optional[Mapping[str, Any]] = None,
    ) -> List[DeliveryResult]:
        """Queue several entries tagged with a shared batch id; wait for all of them.

        Each item takes the keyword arguments of :meth:`log`.
        """
        items = list(items)
        batch_id = generate_id()
        futures = []
        for index, item in enumerate(items):
            kwargs = dict(item)
            kwargs["metadata"] = {
                **(common_metadata or {}),
                **(kwargs.get("metadata") or {}),
                "batch_id": batch_id,
                "batch_index": index,
                "batch_total": len(items),
            }
            futures.append(self.log(**kwargs))
        return list(await asyncio.gather(*futures))

    def with_context(self, context: Any) -> "ContextLogger":
        return ContextLogger(self, context)

    async def health_check(self) -> HealthStatus:
        sink = await self._sink.health_check()
        overflow = await self._store.health_check()
        return build_health(sink, overflow)

    # ---------- dispatch

    async def _dispatch(self, item: Item) -> Any:
        if isinstance(item, Notification):
            payload = self._payloads.build_notification(item)
        else:
            payload = await self._payloads.build(item)
        return await self._sink.send(payload)


@dataclass(frozen=True)
class TimerResult:
    duration_ms: float
    label: str
    delivery: DeliveryResult


class Timer:
    def __init__(self, parent: RelayLogger, label: str):
        self._parent = parent
        self.label = label
        self.started_at = utc_now()
        self._t0 = time.monotonic()

    async def stop(
        self,
        message: Optional[str] = None,
        data: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> TimerResult:
        duration_ms = round((time.monotonic() - self._t0) * 1000.0, 3)
        meta = {
            **(metadata or {}),
            "duration_ms": duration_ms,
            "timer_label": self.label,
            "started_at": iso_timestamp(self.started_at),
        }
        delivery = await self._parent.info(
            message or f"Timer '{self.label}' completed", data, meta
        )
        return TimerResult(duration_ms=duration_ms, label=self.label, delivery=delivery)


class ContextLogger:
    """Logger view that stamps every entry with ``context`` and a ``context_id``."""

    def __init__(self, parent: RelayLogger, context: Any):
        self._parent = parent
        self.context = context
        self.context_id = generate_id()

    def _meta(self, metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        return {**(metadata or {}), "context": self.context, "context_id": self.context_id}

    def log(
        self, level: Union[LogLevel, str], message: str, **kwargs: Any
    ) -> asyncio.Future[DeliveryResult]:
        kwargs["metadata"] = self._meta(kwargs.get("metadata"))
        return self._parent.log(level, message, **kwargs)

    def info(self, message: str, data: Any = None, metadata: Optional[Mapping] = None):
        return self._parent.info(message, data, self._meta(metadata))

    def warn(self, message: str, data: Any = None, metadata: Optional[Mapping] = None):
        return self._parent.warn(message, data, self._meta(metadata))

    def error(
        self,
        message: str,
        error: Any = None,
        data: Any = None,
        metadata: Optional[Mapping] = None,
    ):
        return self._parent.error(message, error, data, self._meta(metadata))

    def debug(self, message: str, data: Any = None, metadata: Optional[Mapping] = None):
        return self._parent.debug(message, data, self._meta(metadata))

    def success(
        self,
        message: str,
        data: Any = None,
        response: Any = None,
        metadata: Optional[Mapping] = None,
    ):
        return self._parent.success(message, data, response, self._meta(metadata))


def create_logger(
    settings: Optional[RelayLogSettings] = None,
    *,
    name: str = "relaylog",
    http_client: Optional[httpx.AsyncClient] = None,
    **sections: Mapping[str, Any],
) -> RelayLogger:
    """Build a RelayLogger from settings (env/.env when omitted) plus section overrides.

    Raises:
        ConfigurationError: invalid destination or credential format
    """
    if settings is None:
        settings = load_settings(**sections)
    elif sections:
        settings = settings.merged(**sections)
    return RelayLogger(settings, name=name, http_client=http_client)
