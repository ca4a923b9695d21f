"""Application configuration. Loads from env vars (or .env) once at startup."""
from __future__ import annotations

from typing import Literal

import httpx
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings. Override via environment variables.

    ENDPOINT and ENDPOINT_TOKEN have no default: a missing value is a
    startup error and the service does not start.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Upload target: every finished speaking turn is sent here as one WAV
    ENDPOINT: str
    ENDPOINT_TOKEN: SecretStr
    IDENTITY_HEADER: str = "User-Id"
    UPLOAD_METHOD: Literal["PUT", "POST"] = "PUT"
    UPLOAD_TIMEOUT_SECONDS: float = 30.0
    # 0 = no cap on concurrent uploads
    MAX_CONCURRENT_UPLOADS: int = 0
    # On shutdown, wait this long for in-flight uploads before abandoning them
    SHUTDOWN_DRAIN_SECONDS: float = 10.0

    # Speaker buffers: pre-allocated capacity per speaking turn (stereo 44.1kHz)
    BUFFER_PREALLOC_SECONDS: float = 10.0
    REGISTRY_SHARDS: int = 16
    # Silent speaker with no audio yet: drop the entry (True) or keep waiting (False)
    DISCARD_EMPTY_ON_SILENCE: bool = True
    # Client disconnect: flush that user's buffered audio instead of dropping it
    FLUSH_ON_DISCONNECT: bool = False

    # HTTP/WebSocket host for the media bridge
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Logging: level (DEBUG, INFO, WARNING, ERROR); file path empty = console only
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    LOG_JSON: bool = False

    @field_validator("ENDPOINT")
    @classmethod
    def check_endpoint(cls, value: str) -> str:
        value = value.strip()
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as err:
            raise ValueError(f"ENDPOINT is not a valid URL: {err}") from err
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("ENDPOINT must be an absolute http(s) URL")
        return value

    @field_validator("ENDPOINT_TOKEN")
    @classmethod
    def check_token(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("ENDPOINT_TOKEN must not be empty")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown LOG_LEVEL {value!r}")
        return level

    @field_validator("BUFFER_PREALLOC_SECONDS", "UPLOAD_TIMEOUT_SECONDS", "SHUTDOWN_DRAIN_SECONDS")
    @classmethod
    def check_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @field_validator("REGISTRY_SHARDS")
    @classmethod
    def check_shards(cls, value: int) -> int:
        if value < 1:
            raise ValueError("REGISTRY_SHARDS must be >= 1")
        return value

    @field_validator("MAX_CONCURRENT_UPLOADS")
    @classmethod
    def check_max_uploads(cls, value: int) -> int:
        if value < 0:
            raise ValueError("MAX_CONCURRENT_UPLOADS must be >= 0")
        return value


def get_settings() -> Settings:
    """Read settings from the environment. Raises pydantic.ValidationError when invalid."""
    return Settings()
