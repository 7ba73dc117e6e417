"""Oversized-content handling: content variants, overflow store client, field router."""

from .content import Content, ErrorContent, StructuredContent, TextContent, classify, classify_error
from .router import (
    NOT_CONFIGURED_MARKER,
    UNSERIALIZABLE_MARKER,
    UPLOAD_FAILED_MARKER,
    ContentRouter,
)
from .store import OverflowStore

__all__ = [
    "Content",
    "ErrorContent",
    "StructuredContent",
    "TextContent",
    "classify",
    "classify_error",
    "ContentRouter",
    "OverflowStore",
    "UPLOAD_FAILED_MARKER",
    "NOT_CONFIGURED_MARKER",
    "UNSERIALIZABLE_MARKER",
]
