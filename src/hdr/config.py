"""Configuration management for the HDR SDK."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hdr.errors import ConfigurationError
from hdr.urls import get_wss_url, resolve_hostname

DEFAULT_BASE_URL = "https://api.hdr.is/compute/"
DEFAULT_MODEL = "claude-3-5-sonnet-20241022"


class Settings(BaseSettings):
    """SDK settings, read from ``HDR_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="HDR_", case_sensitive=False, extra="forbid")

    # Endpoints
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Compute API base URL")
    api_key: str | None = Field(default=None, description="Bearer token for the compute API")
    ws_url: str | None = Field(default=None, description="Websocket endpoint; derived from base_url when unset")
    mcp_url: str | None = Field(default=None, description="MCP SSE endpoint; derived from the machine host when unset")
    hostname_override: str | None = Field(default=None, description="Fixed machine host URL")
    machine_id_field: Literal["machine_id", "hostname"] | None = Field(
        default=None, description="Preferred metadata key carrying the machine identifier"
    )

    # Conversation log
    log_dir: Path = Field(default=Path("./computer_logs"), description="Conversation log root")
    log_conversation: bool = Field(default=True, description="Write conversation.jsonl")
    log_screenshot: bool = Field(default=True, description="Write screenshots to PNG files")
    log_level: str = Field(default="INFO", description="Log level")

    # Timeouts
    metadata_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for the welcome frame")
    open_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for the channel to open")

    # Oracle
    model: str = Field(default=DEFAULT_MODEL, description="Model used by Computer.do()")
    max_tokens: int = Field(default=4096, gt=0, description="Maximum tokens per model turn")
    temperature: float = Field(default=0.0, ge=0.0, le=1.0, description="Sampling temperature")
    max_steps: int | None = Field(default=None, gt=0, description="Optional cap on model turns per task")

    @property
    def resolved_ws_url(self) -> str:
        if self.ws_url:
            return self.ws_url
        try:
            return get_wss_url(self.base_url)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    def resolved_hostname(self, machine_id: str | None) -> str:
        try:
            return resolve_hostname(self.base_url, machine_id, override=self.hostname_override)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc


def get_settings(**overrides: Any) -> Settings:
    """Get SDK settings.

    Args:
        **overrides: Explicit values that win over the environment

    Returns:
        Settings instance
    """
    return Settings(**overrides)
