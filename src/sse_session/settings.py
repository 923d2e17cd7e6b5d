from __future__ import annotations

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sse_session.logging import get_log_level_value
from sse_session.url import DEFAULT_STREAM_PATH

ENV_PREFIX = "SSE_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class StreamSettings(BaseSettings):
    """Settings for one SSE stream client."""

    model_config = prefixed_settings_config(ENV_PREFIX)

    base_url: str
    stream_path: str = DEFAULT_STREAM_PATH
    reconnect_base_delay_seconds: float = 1.0
    max_reconnect_attempts: int = 5
    probe_timeout_seconds: float = 10.0
    transport_retry_seconds: float = 3.0
    tunnel_host_markers: tuple[str, ...] = ("ngrok",)
    log_level: str = "INFO"

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: object, info: ValidationInfo) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError(f"{info.field_name} must be non-empty")
        return normalized

    @field_validator("tunnel_host_markers", mode="after")
    @classmethod
    def _normalize_tunnel_host_markers(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(marker.strip().lower() for marker in value if marker.strip())

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        get_log_level_value(value)
        return value.strip().upper()

    @model_validator(mode="after")
    def _validate_stream_settings(self) -> StreamSettings:
        if not self.stream_path.startswith("/"):
            raise ValueError("stream_path must start with '/'")
        if self.reconnect_base_delay_seconds < 0:
            raise ValueError("reconnect_base_delay_seconds must be >= 0")
        if self.max_reconnect_attempts < 1:
            raise ValueError("max_reconnect_attempts must be >= 1")
        if self.probe_timeout_seconds <= 0:
            raise ValueError("probe_timeout_seconds must be > 0")
        if self.transport_retry_seconds < 0:
            raise ValueError("transport_retry_seconds must be >= 0")
        return self
