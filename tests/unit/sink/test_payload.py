"""
Unit tests for PayloadBuilder: block layout, routed fields and sink limits.
"""

import pytest

from relaylog.config import DEFAULT_COLORS, SinkLimits, SinkSettings
from relaylog.models import LogEntry, LogLevel, Notification, NotificationField
from relaylog.overflow import ContentRouter
from relaylog.sink import PayloadBuilder, embed_length


def entry(level=LogLevel.INFO, message="Nightly sync finished", **kwargs):
    return LogEntry(
        level=level, function_name="sync_orders", file_name="jobs", message=message, **kwargs
    )


@pytest.fixture
def builder(sink_settings, fake_store):
    return PayloadBuilder(sink_settings, ContentRouter(fake_store))


@pytest.mark.asyncio
async def test_basic_block(builder):
    payload = await builder.build(entry())
    embed = payload["embeds"][0]

    assert payload["username"] == "Logger Service"
    assert payload["allowed_mentions"] == {"parse": []}
    assert embed["title"] == "📋 INFO - sync_orders()"
    assert embed["description"] == "Nightly sync finished"
    assert embed["color"] == DEFAULT_COLORS["INFO"]
    assert embed["author"]["name"] == "jobs"
    assert embed["footer"]["text"] == "relaylog"
    assert embed["timestamp"].endswith("Z")
    assert embed["fields"] == []


@pytest.mark.asyncio
async def test_field_order_and_environment(builder):
    payload = await builder.build(
        entry(
            LogLevel.ERROR,
            data={"rows": 3},
            error=RuntimeError("boom"),
            response={"status": 500},
            metadata={"job": "nightly"},
        )
    )
    names = [f["name"] for f in payload["embeds"][0]["fields"]]
    assert names == ["📋 Metadata", "📊 Data", "📤 Response", "❌ Error", "🔧 Environment"]
    env = payload["embeds"][0]["fields"][-1]
    assert env["inline"] is True
    assert "**Python:**" in env["value"]


@pytest.mark.asyncio
async def test_no_environment_for_info(builder):
    payload = await builder.build(entry(data="x"))
    names = [f["name"] for f in payload["embeds"][0]["fields"]]
    assert names == ["📊 Data"]


@pytest.mark.asyncio
async def test_empty_metadata_is_skipped(builder):
    payload = await builder.build(entry(metadata={}))
    assert payload["embeds"][0]["fields"] == []


@pytest.mark.asyncio
async def test_overflowed_field_is_labelled(builder, fake_store):
    payload = await builder.build(entry(data="d" * 5000, metadata={"blob": "m" * 5000}))
    fields = payload["embeds"][0]["fields"]

    assert fields[0]["name"] == "📋 Metadata"
    assert fields[1]["name"] == "📊 Data (Overflow)"
    assert "View full content" in fields[1]["value"]
    assert [u[3] for u in fake_store.uploads] == ["metadata", "data"]


@pytest.mark.asyncio
async def test_degraded_field_keeps_plain_label(sink_settings, failing_store):
    builder = PayloadBuilder(sink_settings, ContentRouter(failing_store))
    payload = await builder.build(entry(data="d" * 5000))
    field = payload["embeds"][0]["fields"][0]

    assert field["name"] == "📊 Data"
    assert field["value"].endswith("[TRUNCATED - Upload failed]")
    assert len(field["value"]) <= 1024


@pytest.mark.asyncio
async def test_custom_level_uses_fallbacks(builder):
    payload = await builder.build(entry(level="AUDIT"))
    embed = payload["embeds"][0]
    assert embed["title"] == "📝 AUDIT - sync_orders()"
    assert embed["color"] == DEFAULT_COLORS["INFO"]


@pytest.mark.asyncio
async def test_long_message_truncated(builder):
    payload = await builder.build(entry(message="m" * 5000))
    description = payload["embeds"][0]["description"]
    assert len(description) == 4096
    assert description.endswith("...")


@pytest.mark.asyncio
async def test_level_tables_override(webhook_url, fake_store):
    settings = SinkSettings(webhook_url=webhook_url, colors={"info": 1}, icons={"INFO": "i"})
    builder = PayloadBuilder(settings, ContentRouter(fake_store))
    embed = (await builder.build(entry()))["embeds"][0]
    assert embed["color"] == 1
    assert embed["title"].startswith("i INFO")
    assert settings.colors["ERROR"] == DEFAULT_COLORS["ERROR"]


def test_notification_block(builder):
    note = Notification(
        title="Deploy",
        description="v1.2.3 rolled out",
        fields=(NotificationField("region", "eu-west", inline=True),),
        username="deployer",
    )
    payload = builder.build_notification(note)
    embed = payload["embeds"][0]

    assert payload["username"] == "deployer"
    assert embed["title"] == "Deploy"
    assert embed["color"] == 5814783
    assert embed["fields"] == [{"name": "region", "value": "eu-west", "inline": True}]


def test_max_fields_enforced(builder):
    note = Notification(fields=tuple(NotificationField(f"f{i}", "v") for i in range(30)))
    embed = builder.build_notification(note)["embeds"][0]
    assert len(embed["fields"]) == 25
    assert embed["fields"][-1]["name"] == "f24"


def test_total_characters_enforced(builder):
    note = Notification(
        description="d" * 3000,
        fields=tuple(NotificationField(f"f{i}", "v" * 1000) for i in range(10)),
    )
    embed = builder.build_notification(note)["embeds"][0]
    assert embed_length(embed) <= 6000
    assert embed["fields"]


def test_total_characters_with_custom_limits(webhook_url, fake_store):
    settings = SinkSettings(
        webhook_url=webhook_url, limits=SinkLimits(total_characters=500, field_value=300)
    )
    builder = PayloadBuilder(settings, ContentRouter(fake_store))
    note = Notification(fields=tuple(NotificationField(f"f{i}", "v" * 300) for i in range(5)))
    embed = builder.build_notification(note)["embeds"][0]
    assert embed_length(embed) <= 500


def test_username_truncated(builder):
    payload = builder.build_notification(Notification(username="u" * 200))
    assert len(payload["username"]) == 80
