"""Notification sink client and payload assembly."""

from .payload import PayloadBuilder, embed_length
from .webhook import WebhookSink

__all__ = ["PayloadBuilder", "WebhookSink", "embed_length"]
