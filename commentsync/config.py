"""Application configuration."""

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseModel):
    """Remote comment store configuration."""

    # Base URL of the comment API
    base_url: str = "http://localhost:8000"

    # Bearer token of the viewer (optional - anonymous viewers can only read)
    api_token: str | None = None

    # Per-request timeout in seconds
    timeout: float = 30.0


class ThreadSettings(BaseModel):
    """Comment thread paging and validation configuration."""

    # Top-level comments requested per page
    page_size: int = Field(default=20, ge=1)

    # Replies requested per page when a thread is expanded
    reply_page_size: int = Field(default=10, ge=1)

    # Longest accepted comment text, after trimming
    max_text_length: int = Field(default=500, ge=1)


class ObservabilitySettings(BaseModel):
    """Observability configuration for Logfire."""

    # Logfire API token (optional - if not set, logs only go to console)
    # Can be set via OBSERVABILITY__LOGFIRE_TOKEN env var
    logfire_token: str | None = None

    # Whether to send telemetry to Logfire cloud
    # If None, will auto-determine: sends if token is present, otherwise console-only
    send_to_logfire: bool | None = None


class Settings(BaseSettings):
    """Application settings.

    Set environment variables to override, using `__` for nested values:

        ENVIRONMENT=production
        STORE__BASE_URL=https://api.example.com
        STORE__API_TOKEN=...
        THREAD__PAGE_SIZE=30
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # Allows STORE__BASE_URL syntax
    )

    environment: Literal["test", "development", "staging", "production"] = "development"
    debug: bool = False

    # Nested settings
    store: StoreSettings = StoreSettings()
    thread: ThreadSettings = ThreadSettings()
    observability: ObservabilitySettings = ObservabilitySettings()
