"""
Pytest configuration and fixtures for relaylog.

Provides cross-platform event loop configuration, valid destination values,
and in-memory stand-ins for the sink and overflow store.
"""

import asyncio
import os
import sys

import pytest

from relaylog.config import OverflowSettings, SinkSettings
from relaylog.errors import OverflowUploadError, TransientDeliveryError
from relaylog.health import BackendHealth
from relaylog.models import OverflowObject
from relaylog.utils import utc_now

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

WEBHOOK_URL = "https://discord.com/api/webhooks/123456789012345678/abcDEF_ghi-JKL"
TOKEN = "ghp_" + "a" * 36


@pytest.fixture
def webhook_url():
    return WEBHOOK_URL


@pytest.fixture
def token():
    return TOKEN


@pytest.fixture
def sink_settings():
    return SinkSettings(webhook_url=WEBHOOK_URL)


@pytest.fixture
def overflow_settings():
    return OverflowSettings(token=TOKEN, owner="acme", repo="log-archive")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep RELAYLOG_* variables and stray .env files out of settings loading."""
    for key in list(os.environ):
        if key.upper().startswith("RELAYLOG_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class RecordingSink:
    """Sink that records payloads; optionally fails the first N sends."""

    def __init__(self, fail_first_n: int = 0, error=None):
        self.payloads = []
        self.calls = 0
        self._fail = fail_first_n
        self._error = error or TransientDeliveryError("rate limited", status_code=429)

    async def send(self, payload):
        self.calls += 1
        if self._fail > 0:
            self._fail -= 1
            raise self._error
        self.payloads.append(payload)
        return {"ok": True}

    async def health_check(self):
        return BackendHealth.healthy("recording sink")

    def configure(self, settings):
        pass

    async def aclose(self):
        pass


class FakeStore:
    """Overflow store that records uploads, or raises when ``fail`` is set."""

    is_configured = True

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads = []

    async def upload(self, content, function_name, file_name, directory="logs"):
        if self.fail:
            raise OverflowUploadError(
                "Overflow upload failed: HTTP 502: Bad Gateway", status_code=502
            )
        self.uploads.append((content, function_name, file_name, directory))
        name = f"{function_name}-{file_name}-{len(self.uploads)}.json"
        return OverflowObject(
            path=f"{directory}/2025-01-01/{name}",
            filename=name,
            size_bytes=len(content.encode("utf-8")),
            sha="deadbeef",
            raw_url=f"https://raw.example.test/acme/log-archive/main/{directory}/{name}",
            web_url=f"https://example.test/acme/log-archive/blob/main/{directory}/{name}",
            uploaded_at=utc_now(),
        )

    async def aclose(self):
        pass


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def failing_store():
    return FakeStore(fail=True)
