"""
Unit tests for OverflowStore against a mocked contents API.
"""

import base64
import json
from datetime import datetime, timezone

import httpx
import pytest

from relaylog.config import OverflowSettings
from relaylog.errors import ConfigurationError, OverflowUploadError, SizeLimitError
from relaylog.overflow import OverflowStore

NOW = datetime(2025, 3, 9, 14, 5, 7, 123456, tzinfo=timezone.utc)


def make_store(settings, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OverflowStore(settings, client=client), client


def created(request):
    path = request.url.path.split("/contents/", 1)[1]
    return httpx.Response(
        201,
        json={
            "content": {
                "sha": "abc123",
                "path": path,
                "html_url": f"https://github.com/acme/log-archive/blob/main/{path}",
            }
        },
    )


@pytest.mark.asyncio
async def test_upload_puts_base64_content(overflow_settings, token):
    seen = []

    def handler(request):
        seen.append(request)
        return created(request)

    store, client = make_store(overflow_settings, handler)
    async with client:
        obj = await store.upload('{"big": true}', "sync_orders", "jobs", directory="data")

    assert len(seen) == 1
    request = seen[0]
    assert request.method == "PUT"
    assert request.url.host == "api.github.com"
    assert request.url.path.startswith("/repos/acme/log-archive/contents/data/")
    assert request.headers["authorization"] == f"Bearer {token}"
    assert request.headers["accept"] == "application/vnd.github+json"

    body = json.loads(request.content)
    assert base64.b64decode(body["content"]).decode("utf-8") == '{"big": true}'
    assert body["branch"] == "main"
    assert body["message"].startswith("Add log file: sync_orders-jobs-")

    assert obj.filename.startswith("sync_orders-jobs-")
    assert obj.filename.endswith(".json")
    assert obj.sha == "abc123"
    assert obj.size_bytes == len('{"big": true}')
    assert obj.raw_url == f"https://raw.githubusercontent.com/acme/log-archive/main/{obj.path}"
    assert obj.web_url.endswith(obj.path)


@pytest.mark.asyncio
async def test_upload_serializes_non_string_content(overflow_settings):
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return created(request)

    store, client = make_store(overflow_settings, handler)
    async with client:
        await store.upload({"rows": [1, 2]}, "fn", "mod")

    decoded = base64.b64decode(bodies[0]["content"]).decode("utf-8")
    assert json.loads(decoded) == {"rows": [1, 2]}


def test_folder_formats(overflow_settings):
    store = OverflowStore(overflow_settings)
    assert store.folder_for(NOW) == "2025-03-09"

    store.configure(overflow_settings.model_copy(update={"folder_format": "YYYY/MM/DD"}))
    assert store.folder_for(NOW) == "2025/03/09"

    store.configure(overflow_settings.model_copy(update={"folder_format": "YYYY-MM"}))
    assert store.folder_for(NOW) == "2025-03"

    store.configure(overflow_settings.model_copy(update={"use_timestamp_folders": False}))
    assert store.folder_for(NOW) == "logs"


def test_file_name_is_sanitized(overflow_settings):
    store = OverflowStore(overflow_settings)
    name = store.file_name_for("<lambda>", "my module.py", NOW)
    assert name == "_lambda_-my_module.py-2025-03-09T14-05-07-123456Z.json"


def test_commit_message_template(overflow_settings):
    settings = overflow_settings.model_copy(
        update={"commit_message_template": "log {directory}/{folder}/{filename} at {timestamp}"}
    )
    store = OverflowStore(settings)
    assert store.commit_message("f.json", "2025-03-09", "error", "T") == (
        "log error/2025-03-09/f.json at T"
    )


@pytest.mark.asyncio
async def test_missing_token_raises_configuration_error():
    store = OverflowStore(OverflowSettings(owner="acme", repo="log-archive"))
    with pytest.raises(ConfigurationError):
        await store.upload("x", "fn", "mod")


@pytest.mark.asyncio
async def test_missing_repo_raises_configuration_error(token):
    store = OverflowStore(OverflowSettings(token=token, owner="acme"))
    assert not store.is_configured
    with pytest.raises(ConfigurationError):
        await store.upload("x", "fn", "mod")


@pytest.mark.asyncio
async def test_oversized_content_rejected_before_request(overflow_settings):
    calls = []

    def handler(request):
        calls.append(request)
        return created(request)

    settings = overflow_settings.model_copy(update={"max_file_size": 10})
    store, client = make_store(settings, handler)
    async with client:
        with pytest.raises(SizeLimitError):
            await store.upload("é" * 6, "fn", "mod")
    assert calls == []


@pytest.mark.asyncio
async def test_http_error_maps_to_upload_error(overflow_settings):
    def handler(request):
        return httpx.Response(422, json={"message": "Invalid request"})

    store, client = make_store(overflow_settings, handler)
    async with client:
        with pytest.raises(OverflowUploadError) as exc_info:
            await store.upload("x", "fn", "mod")

    assert exc_info.value.status_code == 422
    assert "Invalid request" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_error_maps_to_upload_error(overflow_settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    store, client = make_store(overflow_settings, handler)
    async with client:
        with pytest.raises(OverflowUploadError) as exc_info:
            await store.upload("x", "fn", "mod")
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_health_disabled_without_credentials():
    store = OverflowStore(OverflowSettings())
    first = await store.health_check()
    second = await store.health_check()
    assert first.status == second.status == "disabled"


@pytest.mark.asyncio
async def test_health_probes_repository(overflow_settings):
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/repos/acme/log-archive"
        return httpx.Response(200, json={"full_name": "acme/log-archive"})

    store, client = make_store(overflow_settings, handler)
    async with client:
        health = await store.health_check()
    assert health.status == "healthy"
    assert health.details["repo"] == "acme/log-archive"


@pytest.mark.asyncio
async def test_health_reports_http_error(overflow_settings):
    def handler(request):
        return httpx.Response(401, json={"message": "Bad credentials"})

    store, client = make_store(overflow_settings, handler)
    async with client:
        health = await store.health_check()
    assert health.status == "error"
    assert "Bad credentials" in health.message


@pytest.mark.asyncio
async def test_injected_client_is_not_closed(overflow_settings):
    client = httpx.AsyncClient(transport=httpx.MockTransport(created))
    store = OverflowStore(overflow_settings, client=client)
    await store.aclose()
    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_health_tolerates_non_object_body(overflow_settings):
    store, client = make_store(overflow_settings, lambda request: httpx.Response(200, json=[]))
    async with client:
        health = await store.health_check()
    assert health.status == "healthy"
    assert health.details["repo"] == "acme/log-archive"
