"""
Utility functions for relaylog.

Includes time/size helpers, text truncation and sanitization for the sink's
markdown dialect, destination validators, and caller identification.
"""

import inspect
import os
import re
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import urlparse

_WEBHOOK_RE = re.compile(
    r"^https://((ptb|canary)\.)?(discord\.com|discordapp\.com)/api/webhooks/\d+/[\w-]+$"
)
_TOKEN_RE = re.compile(r"^(ghp_|gho_|ghu_|ghs_|ghr_|github_pat_)[a-zA-Z0-9_]+$")
_REPO_PART_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

# Escaped in inline text so user content cannot break the sink's formatting
_MARKDOWN_CHARS = ("`", "*", "_", "~", "|")


def generate_id() -> str:
    """Short unique id for batches and context loggers."""
    return uuid.uuid4().hex[:12]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def iso_timestamp(dt: Optional[datetime] = None) -> str:
    return (dt or utc_now()).isoformat().replace("+00:00", "Z")


def truncate_text(text: Optional[str], max_length: int) -> str:
    """Cut text to max_length, ending with '...' when shortened."""
    if not text:
        return text or ""
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[:max_length]
    return text[: max_length - 3] + "..."


def sanitize_markdown(text: Optional[str], max_length: int = 2000) -> str:
    """Escape sink-reserved formatting characters, then truncate."""
    if not text:
        return ""
    sanitized = str(text)
    for ch in _MARKDOWN_CHARS:
        sanitized = sanitized.replace(ch, "\\" + ch)
    return truncate_text(sanitized, max_length)


def format_file_size(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0 Bytes"
    size = float(num_bytes)
    for unit in ("Bytes", "KB", "MB"):
        if size < 1024:
            return f"{round(size, 2):g} {unit}"
        size /= 1024
    return f"{round(size, 2):g} GB"


def safe_name(value: str, *, allow_dot: bool = False) -> str:
    """Replace characters unsafe for object-store paths with '_'."""
    pattern = r"[^a-zA-Z0-9_.-]" if allow_dot else r"[^a-zA-Z0-9_-]"
    return re.sub(pattern, "_", value or "unknown")


# ---------- destination validators ----------


def is_valid_webhook_url(url: Optional[str]) -> bool:
    return bool(url) and _WEBHOOK_RE.match(url) is not None


def is_valid_token(token: Optional[str]) -> bool:
    return bool(token) and _TOKEN_RE.match(token) is not None


def is_valid_repo_part(value: Optional[str]) -> bool:
    return bool(value) and _REPO_PART_RE.match(value) is not None


def is_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


# ---------- caller identification ----------


def caller_info(skip_prefix: Optional[str] = None) -> Dict[str, str]:
    """
    Best-effort function/file name of the first frame outside relaylog.

    Returns:
        {"function": ..., "file": ...} with 'unknown' when nothing is found
    """
    package_dir = skip_prefix or os.path.dirname(os.path.abspath(__file__))
    frame = inspect.currentframe()
    try:
        while frame is not None:
            filename = os.path.abspath(frame.f_code.co_filename)
            if not filename.startswith(package_dir) and not filename.startswith("<"):
                name = frame.f_code.co_name
                return {
                    "function": "anonymous" if name == "<module>" else name,
                    "file": os.path.splitext(os.path.basename(filename))[0],
                }
            frame = frame.f_back
    finally:
        del frame
    return {"function": "unknown", "file": "unknown"}
