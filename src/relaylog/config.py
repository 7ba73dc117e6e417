"""
Typed configuration for relaylog.

Every knob has a named field with a documented default. Settings load from the
environment (prefix ``RELAYLOG_``, nested sections separated by ``__``) and an
optional ``.env`` file, e.g.::

    RELAYLOG_SINK__WEBHOOK_URL=https://discord.com/api/webhooks/1/abc
    RELAYLOG_OVERFLOW__TOKEN=ghp_xxx
    RELAYLOG_RATE_LIMIT__MIN_INTERVAL_MS=750

Destination formats are validated eagerly; callers get a ConfigurationError
before anything is queued.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .utils import is_http_url, is_valid_repo_part, is_valid_token, is_valid_webhook_url

BackoffStrategy = Literal["exponential", "fixed"]
FolderFormat = Literal["YYYY-MM-DD", "YYYY/MM/DD", "YYYY-MM"]


class SinkLimits(BaseModel):
    """Hard limits of the notification sink (characters unless noted)."""

    username: int = 80
    embed_title: int = 256
    embed_description: int = 4096
    field_name: int = 256
    field_value: int = 1024
    footer_text: int = 2048
    total_characters: int = 6000
    max_fields: int = 25


DEFAULT_COLORS: Dict[str, int] = {
    "ERROR": 15158332,  # red
    "WARN": 16776960,  # yellow
    "INFO": 3447003,  # blue
    "DEBUG": 9807270,  # grey
    "SUCCESS": 5763719,  # green
}

DEFAULT_ICONS: Dict[str, str] = {
    "ERROR": "🚨",
    "WARN": "⚠️",
    "INFO": "📋",
    "DEBUG": "🔍",
    "SUCCESS": "✅",
}

DEFAULT_SERVICE_ICONS: Dict[str, str] = {
    "ERROR": "https://cdn-icons-png.flaticon.com/512/753/753345.png",
    "WARN": "https://cdn-icons-png.flaticon.com/512/595/595067.png",
    "INFO": "https://cdn-icons-png.flaticon.com/512/1827/1827933.png",
    "DEBUG": "https://cdn-icons-png.flaticon.com/512/2103/2103832.png",
    "SUCCESS": "https://cdn-icons-png.flaticon.com/512/845/845646.png",
}

# Per-level tables; partial overrides keep the levels they do not name
LEVEL_TABLES = ("colors", "icons", "service_icons")


class SinkSettings(BaseModel):
    webhook_url: Optional[str] = None
    service_name: str = "Logger Service"
    avatar_url: str = "https://cdn.discordapp.com/embed/avatars/0.png"
    footer_text: str = "relaylog"
    footer_icon_url: Optional[str] = None
    request_timeout: float = 15.0
    limits: SinkLimits = Field(default_factory=SinkLimits)
    colors: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_COLORS))
    icons: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_ICONS))
    service_icons: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SERVICE_ICONS))

    @field_validator("webhook_url")
    @classmethod
    def _validate_webhook_url(cls, v):
        if v is None or v == "":
            return None
        if not is_valid_webhook_url(v):
            raise ValueError(f"Invalid webhook URL format: {v!r}")
        return v

    @field_validator("colors", "icons", "service_icons", mode="before")
    @classmethod
    def _merge_level_table(cls, v, info):
        # Partial tables only override the levels they name
        defaults = {
            "colors": DEFAULT_COLORS,
            "icons": DEFAULT_ICONS,
            "service_icons": DEFAULT_SERVICE_ICONS,
        }[info.field_name]
        if v is None:
            return dict(defaults)
        return {**defaults, **{str(k).upper(): val for k, val in dict(v).items()}}

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, v):
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v


class RateLimitSettings(BaseModel):
    min_interval_ms: int = 500
    max_retries: int = 3
    retry_backoff: BackoffStrategy = "exponential"
    retry_multiplier: float = 2.0
    base_delay_ms: int = 1000
    max_jitter_ms: int = 1000
    max_delay_ms: Optional[int] = None

    @field_validator("min_interval_ms", "max_retries", "base_delay_ms", "max_jitter_ms")
    @classmethod
    def _non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("max_delay_ms")
    @classmethod
    def _delay_cap(cls, v):
        if v is not None and v < 0:
            raise ValueError("max_delay_ms must be >= 0")
        return v

    @field_validator("retry_multiplier")
    @classmethod
    def _multiplier(cls, v):
        if v < 1:
            raise ValueError("retry_multiplier must be >= 1")
        return v


class OverflowSettings(BaseModel):
    token: Optional[str] = None
    owner: Optional[str] = None
    repo: Optional[str] = None
    branch: str = "main"
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    max_file_size: int = 25 * 1024 * 1024
    content_threshold: int = 1800
    inline_limit: int = 1000
    use_timestamp_folders: bool = True
    folder_format: FolderFormat = "YYYY-MM-DD"
    file_extension: str = "json"
    commit_message_template: str = "Add log file: {filename} [{folder}]"
    request_timeout: float = 30.0

    @field_validator("token")
    @classmethod
    def _validate_token(cls, v):
        if v is None or v == "":
            return None
        if not is_valid_token(v):
            raise ValueError("Invalid overflow store token format")
        return v

    @field_validator("owner", "repo")
    @classmethod
    def _validate_repo_part(cls, v, info):
        if v is None or v == "":
            return None
        if not is_valid_repo_part(v):
            raise ValueError(f"Invalid repository {info.field_name}: {v!r}")
        return v

    @field_validator("api_url", "raw_url")
    @classmethod
    def _validate_base_url(cls, v, info):
        if not is_http_url(v):
            raise ValueError(f"{info.field_name} must be an http(s) URL, got {v!r}")
        return v.rstrip("/")

    @field_validator("max_file_size", "content_threshold", "inline_limit")
    @classmethod
    def _positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("file_extension")
    @classmethod
    def _strip_dot(cls, v):
        return v.lstrip(".") or "json"

    @property
    def is_configured(self) -> bool:
        return bool(self.token and self.owner and self.repo)


class RelayLogSettings(BaseSettings):
    sink: SinkSettings = Field(default_factory=SinkSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    overflow: OverflowSettings = Field(default_factory=OverflowSettings)

    model_config = SettingsConfigDict(
        env_prefix="RELAYLOG_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    def merged(self, **sections: Mapping[str, Any]) -> "RelayLogSettings":
        """Return a copy with the named sections overridden field by field.

        Raises:
            ConfigurationError: on unknown sections/fields or invalid values
        """
        update: Dict[str, BaseModel] = {}
        for name, changes in sections.items():
            if changes is None:
                continue
            if name not in type(self).model_fields:
                raise ConfigurationError(f"Unknown configuration section: {name!r}")
            current: BaseModel = getattr(self, name)
            unknown = set(changes) - set(type(current).model_fields)
            if unknown:
                raise ConfigurationError(
                    f"Unknown {name} option(s): {', '.join(sorted(unknown))}"
                )
            data = current.model_dump()
            for key, value in changes.items():
                if key == "limits" and isinstance(value, Mapping):
                    value = {**data["limits"], **value}
                elif key in LEVEL_TABLES and isinstance(value, Mapping):
                    value = {**data[key], **{str(k).upper(): v for k, v in value.items()}}
                data[key] = value
            update[name] = _validated(type(current), data)
        return self.model_copy(update=update)


def _validated(model: type[BaseModel], data: Mapping[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(_describe(exc)) from exc


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value").removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid configuration: " + "; ".join(parts)


def load_settings(**sections: Mapping[str, Any]) -> RelayLogSettings:
    """Load settings from env/.env, then apply explicit section overrides.

    Example:
        load_settings(sink={"webhook_url": url}, rate_limit={"max_retries": 5})
    """
    try:
        base = RelayLogSettings()
    except ValidationError as exc:
        raise ConfigurationError(_describe(exc)) from exc
    return base.merged(**sections)
