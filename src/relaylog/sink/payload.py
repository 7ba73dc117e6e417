"""
Payload assembly for the notification sink.

Turns a LogEntry (or a free-form Notification) into the sink's JSON document:
one rich-content block with title, description, color, timestamp, footer and
a field list. Payload fields are routed through the ContentRouter on every
call, and every sink limit is enforced before the document leaves here.
"""

from __future__ import annotations

import os
import platform
import time
from typing import Any, Dict, List, Optional

from ..config import SinkSettings
from ..models import LogEntry, LogLevel, Notification, level_name
from ..overflow.router import ContentRouter
from ..utils import iso_timestamp, truncate_text

_STARTED = time.monotonic()

# Rendering order of routed fields
FIELD_LABELS = (
    ("metadata", "📋 Metadata"),
    ("data", "📊 Data"),
    ("response", "📤 Response"),
    ("error", "❌ Error"),
)


def environment_summary() -> str:
    return (
        f"**Platform:** {platform.system() or 'unknown'} {platform.release()}\n"
        f"**Python:** {platform.python_version()}\n"
        f"**PID:** {os.getpid()}\n"
        f"**Uptime:** {int(time.monotonic() - _STARTED)}s"
    )


def embed_length(embed: Dict[str, Any]) -> int:
    """Characters counted against the sink's total-size limit."""
    total = len(embed.get("title") or "") + len(embed.get("description") or "")
    total += len((embed.get("footer") or {}).get("text") or "")
    total += len((embed.get("author") or {}).get("name") or "")
    for fld in embed.get("fields", []):
        total += len(fld["name"]) + len(fld["value"])
    return total


class PayloadBuilder:
    def __init__(self, settings: SinkSettings, router: ContentRouter):
        self._settings = settings
        self._router = router

    @property
    def router(self) -> ContentRouter:
        return self._router

    def configure(self, settings: SinkSettings, router: Optional[ContentRouter] = None) -> None:
        self._settings = settings
        if router is not None:
            self._router = router

    # ---------- log entries ----------

    async def build(self, entry: LogEntry) -> Dict[str, Any]:
        return self._wrap(await self.build_embed(entry))

    async def build_embed(self, entry: LogEntry) -> Dict[str, Any]:
        s = self._settings
        limits = s.limits
        level = level_name(entry.level)

        embed: Dict[str, Any] = {
            "author": {
                "name": truncate_text(entry.file_name, limits.field_name),
                "icon_url": s.service_icons.get(level),
            },
            "title": truncate_text(
                f"{s.icons.get(level, '📝')} {level} - {entry.function_name}()", limits.embed_title
            ),
            "description": truncate_text(entry.message, limits.embed_description),
            "color": s.colors.get(level, s.colors.get("INFO")),
            "timestamp": iso_timestamp(entry.timestamp),
            "footer": self._footer(),
            "fields": [],
        }

        for attr, label in FIELD_LABELS:
            value = getattr(entry, attr)
            if value is None or (attr == "metadata" and not value):
                continue
            decision = await self._router.route(
                value, entry.function_name, entry.file_name, field=attr
            )
            name = label if decision.inline or attr == "metadata" else f"{label} (Overflow)"
            embed["fields"].append(
                {
                    "name": truncate_text(name, limits.field_name),
                    "value": truncate_text(decision.text, limits.field_value),
                    "inline": False,
                }
            )

        if entry.level in (LogLevel.ERROR, LogLevel.WARN):
            embed["fields"].append(
                {"name": "🔧 Environment", "value": environment_summary(), "inline": True}
            )

        return self._fit(embed)

    # ---------- notifications ----------

    def build_notification(self, note: Notification) -> Dict[str, Any]:
        s = self._settings
        limits = s.limits
        embed: Dict[str, Any] = {
            "title": truncate_text(note.title, limits.embed_title),
            "description": truncate_text(note.description, limits.embed_description),
            "color": note.color,
            "timestamp": iso_timestamp(note.timestamp),
            "footer": self._footer(),
            "fields": [
                {
                    "name": truncate_text(f.name, limits.field_name),
                    "value": truncate_text(f.value, limits.field_value),
                    "inline": f.inline,
                }
                for f in note.fields
            ],
        }
        return self._wrap(
            self._fit(embed),
            username=note.username,
            avatar_url=note.avatar_url,
        )

    # ---------- internals ----------

    def _footer(self) -> Dict[str, Any]:
        footer: Dict[str, Any] = {
            "text": truncate_text(self._settings.footer_text, self._settings.limits.footer_text)
        }
        if self._settings.footer_icon_url:
            footer["icon_url"] = self._settings.footer_icon_url
        return footer

    def _wrap(
        self,
        embed: Dict[str, Any],
        *,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        s = self._settings
        return {
            "username": truncate_text(username or s.service_name, s.limits.username),
            "avatar_url": avatar_url or s.avatar_url,
            "embeds": [embed],
            "allowed_mentions": {"parse": []},
        }

    def _fit(self, embed: Dict[str, Any]) -> Dict[str, Any]:
        """Enforce field count and total-size limits.

        Shrinks the description first, then trailing field values, and as a
        last resort drops trailing fields.
        """
        limits = self._settings.limits
        fields: List[Dict[str, Any]] = embed["fields"]
        del fields[limits.max_fields :]

        over = embed_length(embed) - limits.total_characters
        if over <= 0:
            return embed

        description = embed.get("description") or ""
        if description:
            embed["description"] = truncate_text(description, max(0, len(description) - over))
            over = embed_length(embed) - limits.total_characters

        for fld in reversed(fields):
            if over <= 0:
                break
            fld["value"] = truncate_text(fld["value"], max(1, len(fld["value"]) - over))
            over = embed_length(embed) - limits.total_characters

        while over > 0 and fields:
            fields.pop()
            over = embed_length(embed) - limits.total_characters
        return embed
