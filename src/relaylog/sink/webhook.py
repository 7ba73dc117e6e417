from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from ..config import SinkSettings
from ..errors import PermanentDeliveryError, map_http_error
from ..health import BackendHealth


class WebhookSink:
    """Push endpoint client for the notification sink.

    ``send`` returns the sink's response body on 2xx and raises a classified
    DeliveryError otherwise (429 and network faults are transient, everything
    else permanent). Retrying is the scheduler's job.
    """

    def __init__(
        self,
        settings: Optional[SinkSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or SinkSettings()
        self._client = client
        self._owns_client = client is None

    @property
    def settings(self) -> SinkSettings:
        return self._settings

    @property
    def is_configured(self) -> bool:
        return self._settings.webhook_url is not None

    def configure(self, settings: SinkSettings) -> None:
        self._settings = settings

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def send(self, payload: Dict[str, Any]) -> Any:
        url = self._settings.webhook_url
        if not url:
            raise PermanentDeliveryError("Webhook URL not configured")

        try:
            response = await self._http().post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self._settings.request_timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise map_http_error(exc) from exc

        if not response.content:
            return {"status_code": response.status_code}
        try:
            return response.json()
        except ValueError:
            return {"status_code": response.status_code, "body": response.text}

    async def health_check(self) -> BackendHealth:
        url = self._settings.webhook_url
        if not url:
            return BackendHealth.disabled("Webhook URL not configured")

        try:
            response = await self._http().get(url, timeout=self._settings.request_timeout)
        except httpx.HTTPError as exc:
            logger.debug(f"Webhook health probe failed: {exc}")
            return BackendHealth.error(f"{type(exc).__name__}: {exc}")

        if response.is_success:
            return BackendHealth.healthy("Webhook accessible")
        if response.status_code == 405:
            return BackendHealth.healthy("Webhook exists")
        return BackendHealth.error(f"HTTP {response.status_code}: {response.reason_phrase}")
