from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from ..errors import RelayLogError
from ..metrics.registry import metrics_registry
from ..models import ContentDecision
from ..utils import format_file_size, sanitize_markdown, truncate_text
from .content import Content, classify, classify_error
from .store import OverflowStore

UPLOAD_FAILED_MARKER = "\n... [TRUNCATED - Upload failed]"
NOT_CONFIGURED_MARKER = "\n... [TRUNCATED - overflow storage not configured]"
UNSERIALIZABLE_MARKER = "\n... [UNSERIALIZABLE - {error}]"


class ContentRouter:
    """Decides, per payload field, between inlining content and externalizing it.

    Content whose serialized length is at most ``content_threshold`` is
    rendered inline (sanitized, truncated to ``inline_limit``). Longer content
    goes to the overflow store and the field carries a link instead. Upload
    failures never fail the log: the field falls back to a truncated prefix
    ending in an explicit marker, and the error is kept on the decision.

    Decisions are made fresh on every dispatch attempt; a retried entry
    uploads its oversized fields again.
    """

    def __init__(
        self,
        store: Optional[OverflowStore] = None,
        *,
        content_threshold: int = 1800,
        inline_limit: int = 1000,
        field_value_limit: int = 1024,
    ):
        self._store = store
        self.content_threshold = content_threshold
        self.inline_limit = inline_limit
        self.field_value_limit = field_value_limit

    @property
    def store(self) -> Optional[OverflowStore]:
        return self._store

    async def route(
        self, value: Any, function_name: str, file_name: str, field: str = "data"
    ) -> ContentDecision:
        if value is None:
            return ContentDecision(inline=True, text="No content provided", length=0)
        content = classify_error(value) if field == "error" else classify(value)
        return await self.route_content(content, function_name, file_name, field)

    async def route_content(
        self, content: Content, function_name: str, file_name: str, field: str = "data"
    ) -> ContentDecision:
        try:
            text = content.serialize()
        except (TypeError, ValueError) as exc:
            # Circular references, non-string keys
            error = f"{type(exc).__name__}: {exc}"
            logger.warning(f"Field '{field}' is not JSON serializable, inlining repr: {error}")
            marker = UNSERIALIZABLE_MARKER.format(error=type(exc).__name__)
            return self._degraded(repr(getattr(content, "value", content)), marker, error)
        length = len(text)

        if length <= self.content_threshold:
            return ContentDecision(
                inline=True, text=content.render_inline(self.inline_limit), length=length
            )

        if self._store is None or not self._store.is_configured:
            return self._degraded(text, NOT_CONFIGURED_MARKER, None)

        try:
            obj = await self._store.upload(text, function_name, file_name, directory=field)
        except RelayLogError as exc:
            metrics_registry.overflow_uploads_total.labels(field, "failed").inc()
            logger.warning(f"Overflow upload for '{field}' failed, inlining prefix: {exc}")
            return self._degraded(text, UPLOAD_FAILED_MARKER, str(exc))

        metrics_registry.overflow_uploads_total.labels(field, "success").inc()
        reference = (
            f"📁 Content too large for inline delivery ({format_file_size(obj.size_bytes)})\n"
            f"🔗 **View full content:** [{obj.filename}]({obj.raw_url})"
        )
        if obj.web_url:
            reference += f"\n🌐 [Open in browser]({obj.web_url})"
        return ContentDecision(
            inline=False,
            text=truncate_text(reference, self.field_value_limit),
            length=length,
            overflow_ref=obj,
        )

    def _degraded(self, text: str, marker: str, error: Optional[str]) -> ContentDecision:
        # Leave room for the marker so it survives field-value truncation
        budget = max(0, self.field_value_limit - len(marker))
        prefix = sanitize_markdown(text[:budget], budget)
        return ContentDecision(
            inline=True,
            text=prefix + marker,
            length=len(text),
            upload_error=error,
        )
