"""
Tagged content variants for payload fields.

A field value is classified once, at the pipeline boundary, into one of
ErrorContent, StructuredContent or TextContent. Each variant knows how to
serialize itself and how it looks when rendered inline.
"""

from __future__ import annotations

import dataclasses
import json
import traceback
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from ..utils import sanitize_markdown, truncate_text

MAX_CAUSE_DEPTH = 10


def _jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return value


def to_json(value: Any) -> str:
    return json.dumps(_jsonable(value), indent=2, default=str, ensure_ascii=False)


@dataclass(frozen=True)
class TextContent:
    value: str

    def serialize(self) -> str:
        return self.value

    def render_inline(self, limit: int) -> str:
        return sanitize_markdown(self.value, limit)


@dataclass(frozen=True)
class StructuredContent:
    value: Any

    def serialize(self) -> str:
        return to_json(self.value)

    def render_inline(self, limit: int) -> str:
        return f"```json\n{truncate_text(self.serialize(), limit)}\n```"


@dataclass(frozen=True)
class ErrorContent:
    name: str
    message: str
    stack: Optional[str] = None
    causes: tuple = ()

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorContent":
        causes: List[Dict[str, str]] = []
        seen = {id(exc)}
        current = exc.__cause__ or exc.__context__
        while current is not None and id(current) not in seen and len(causes) < MAX_CAUSE_DEPTH:
            seen.add(id(current))
            causes.append({"name": type(current).__name__, "message": str(current)})
            current = current.__cause__ or current.__context__
        stack = None
        if exc.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(name=type(exc).__name__, message=str(exc), stack=stack, causes=tuple(causes))

    def as_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"name": self.name, "message": self.message}
        if self.stack:
            record["stack"] = self.stack
        if self.causes:
            record["cause"] = list(self.causes)
        return record

    def serialize(self) -> str:
        return to_json(self.as_record())

    def render_inline(self, limit: int) -> str:
        return f"```json\n{truncate_text(self.serialize(), limit)}\n```"


Content = Union[ErrorContent, StructuredContent, TextContent]


def classify(value: Any) -> Content:
    """Resolve an arbitrary field value to its content variant."""
    if isinstance(value, BaseException):
        return ErrorContent.from_exception(value)
    if isinstance(value, (str, int, float, bool)) or value is None:
        return TextContent("" if value is None else str(value))
    return StructuredContent(value)


def classify_error(value: Any) -> Content:
    """Error fields: exceptions are normalized, primitives wrapped as {message}."""
    if isinstance(value, BaseException):
        return ErrorContent.from_exception(value)
    if isinstance(value, (Mapping, list, tuple)) or hasattr(value, "model_dump"):
        return StructuredContent(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return StructuredContent(value)
    return StructuredContent({"message": str(value)})
