from __future__ import annotations

import base64
import json
from datetime import datetime
from typing import Any, Optional

import httpx
from loguru import logger

from ..config import OverflowSettings
from ..errors import ConfigurationError, OverflowUploadError, SizeLimitError
from ..health import BackendHealth
from ..models import OverflowObject
from ..utils import format_file_size, iso_timestamp, safe_name, utc_now

_ACCEPT = "application/vnd.github+json"


class OverflowStore:
    """Client for the size-unbounded overflow store (repository contents API).

    Objects are only ever created, under
    ``{directory}/{date folder}/{function}-{file}-{timestamp}.{ext}``; nothing
    is updated or deleted. Upload failures raise typed errors and are never
    retried here.

    Example:
        store = OverflowStore(OverflowSettings(token="ghp_x", owner="acme", repo="logs"))
        obj = await store.upload(big_text, "sync_orders", "jobs", directory="data")
        print(obj.raw_url)
    """

    def __init__(
        self,
        settings: Optional[OverflowSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or OverflowSettings()
        self._client = client
        self._owns_client = client is None

    @property
    def settings(self) -> OverflowSettings:
        return self._settings

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def configure(self, settings: OverflowSettings) -> None:
        self._settings = settings

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._settings.token}",
            "Accept": _ACCEPT,
            "Content-Type": "application/json",
        }

    # ---------- path generation ----------

    def folder_for(self, now: Optional[datetime] = None) -> str:
        if not self._settings.use_timestamp_folders:
            return "logs"
        now = now or utc_now()
        fmt = self._settings.folder_format
        if fmt == "YYYY/MM/DD":
            return now.strftime("%Y/%m/%d")
        if fmt == "YYYY-MM":
            return now.strftime("%Y-%m")
        return now.strftime("%Y-%m-%d")

    def file_name_for(
        self, function_name: str, file_name: str, now: Optional[datetime] = None
    ) -> str:
        now = now or utc_now()
        stamp = now.strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        return (
            f"{safe_name(function_name)}-{safe_name(file_name, allow_dot=True)}"
            f"-{stamp}.{self._settings.file_extension}"
        )

    def commit_message(self, filename: str, folder: str, directory: str, timestamp: str) -> str:
        return (
            self._settings.commit_message_template.replace("{filename}", filename)
            .replace("{folder}", folder)
            .replace("{directory}", directory)
            .replace("{timestamp}", timestamp)
        )

    # ---------- upload ----------

    async def upload(
        self,
        content: Any,
        function_name: str,
        file_name: str,
        directory: str = "logs",
    ) -> OverflowObject:
        """Create a new object holding ``content`` and return where it lives.

        Raises:
            ConfigurationError: token, owner or repo missing
            SizeLimitError: serialized content larger than max_file_size
            OverflowUploadError: HTTP, network or timeout failure
        """
        s = self._settings
        if not s.token:
            raise ConfigurationError("Overflow store token not configured")
        if not s.owner or not s.repo:
            raise ConfigurationError("Overflow store repository owner and name must be configured")

        text = content if isinstance(content, str) else json.dumps(content, indent=2, default=str)
        raw = text.encode("utf-8")
        if len(raw) > s.max_file_size:
            raise SizeLimitError(
                f"Content size ({format_file_size(len(raw))}) exceeds maximum allowed size "
                f"({format_file_size(s.max_file_size)})"
            )

        now = utc_now()
        folder = self.folder_for(now)
        filename = self.file_name_for(function_name, file_name, now)
        path = f"{safe_name(directory)}/{folder}/{filename}"
        payload = {
            "message": self.commit_message(filename, folder, directory, iso_timestamp(now)),
            "content": base64.b64encode(raw).decode("ascii"),
            "branch": s.branch,
        }
        url = f"{s.api_url}/repos/{s.owner}/{s.repo}/contents/{path}"

        try:
            response = await self._http().put(
                url, json=payload, headers=self._headers(), timeout=s.request_timeout
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise OverflowUploadError(
                f"Overflow upload failed: {_error_message(exc.response)}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise OverflowUploadError(
                f"Overflow upload failed: {type(exc).__name__}: {exc}"
            ) from exc
        except ValueError as exc:
            raise OverflowUploadError("Overflow upload failed: invalid JSON response") from exc

        info = (body.get("content") if isinstance(body, dict) else None) or {}
        obj = OverflowObject(
            path=path,
            filename=filename,
            size_bytes=len(raw),
            sha=info.get("sha"),
            raw_url=f"{s.raw_url}/{s.owner}/{s.repo}/{s.branch}/{path}",
            web_url=info.get("html_url"),
            uploaded_at=now,
        )
        logger.debug(f"Overflow object created: {path} ({format_file_size(len(raw))})")
        return obj

    # ---------- health ----------

    async def health_check(self) -> BackendHealth:
        s = self._settings
        if not s.token:
            return BackendHealth.disabled("Overflow store token not configured")
        if not s.owner or not s.repo:
            return BackendHealth.disabled("Overflow store repository owner and name not configured")

        try:
            response = await self._http().get(
                f"{s.api_url}/repos/{s.owner}/{s.repo}",
                headers=self._headers(),
                timeout=s.request_timeout,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            return BackendHealth.error(_error_message(exc.response))
        except (httpx.HTTPError, ValueError) as exc:
            return BackendHealth.error(f"{type(exc).__name__}: {exc}")
        repo = body.get("full_name") if isinstance(body, dict) else None
        repo = repo or f"{s.owner}/{s.repo}"
        return BackendHealth.healthy("Overflow store API accessible", repo=repo)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"HTTP {response.status_code}: {body['message']}"
    return f"HTTP {response.status_code}: {response.reason_phrase}"
