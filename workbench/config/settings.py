"""Workbench configuration settings."""

from __future__ import annotations

import os
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from workbench.telemetry.errors import ConfigurationError

MISSING_CREDENTIAL_MESSAGE = (
    "The Gemini API key is not configured. Set the GEMINI_API_KEY environment "
    "variable and restart the service to enable extraction, news and chat."
)


def _api_key_from_env() -> str:
    return os.getenv("GEMINI_API_KEY", "") or os.getenv("API_KEY", "")


class GeminiConfig(BaseModel):
    """Gemini API configuration."""

    api_key: str = Field(default_factory=_api_key_from_env, repr=False)
    model: str = Field(default_factory=lambda: os.getenv("WORKBENCH_MODEL", "gemini-2.5-flash"))
    extraction_temperature: float = 0.2
    chat_temperature: float = 0.3


class RetryConfig(BaseModel):
    """Retry and backoff configuration for transient model errors.

    ``max_retries`` defaults to zero: every request is attempted once.
    """

    max_retries: int = Field(
        default_factory=lambda: int(os.getenv("WORKBENCH_MAX_RETRIES", "0"))
    )
    backoff_base_ms: int = 1000
    backoff_max_ms: int = 30000
    jitter: bool = True

    @field_validator("max_retries")
    @classmethod
    def _validate_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("WORKBENCH_MAX_RETRIES must be >= 0")
        return value


class TimeoutConfig(BaseModel):
    """Timeout budgets for model requests."""

    ai_timeout_s: float = Field(
        default_factory=lambda: float(os.getenv("WORKBENCH_AI_TIMEOUT_S", "60"))
    )

    @field_validator("ai_timeout_s")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("WORKBENCH_AI_TIMEOUT_S must be > 0")
        return value


class APIConfig(BaseModel):
    """HTTP surface controls from environment."""

    allowed_origins: list[str] = Field(
        default_factory=lambda: APIConfig.parse_allowed_origins(
            os.getenv("WORKBENCH_ALLOWED_ORIGINS", "")
        )
    )
    max_upload_bytes: int = Field(
        default_factory=lambda: int(os.getenv("WORKBENCH_MAX_UPLOAD_BYTES", str(25 * 1024 * 1024)))
    )

    @staticmethod
    def parse_allowed_origins(value: str) -> list[str]:
        if not value.strip():
            return ["http://localhost", "http://127.0.0.1"]
        origins = [origin.strip() for origin in value.split(",") if origin.strip()]
        if "*" in origins:
            raise ValueError("WORKBENCH_ALLOWED_ORIGINS cannot include '*'")
        return origins

    @field_validator("allowed_origins")
    @classmethod
    def _validate_allowed_origins(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("allowed_origins cannot be empty")
        for origin in value:
            parsed = urlparse(origin)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                raise ValueError(f"Invalid CORS origin: {origin}")
        return value

    @field_validator("max_upload_bytes")
    @classmethod
    def _validate_upload_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("WORKBENCH_MAX_UPLOAD_BYTES must be >= 1")
        return value


class WorkbenchConfig(BaseModel):
    """Root configuration, read once at process start."""

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    log_level: str = Field(default_factory=lambda: os.getenv("WORKBENCH_LOG_LEVEL", "INFO"))
    log_style: Literal["json", "human"] = Field(
        default_factory=lambda: os.getenv("WORKBENCH_LOG_STYLE", "json").strip().lower()
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.gemini.api_key.strip())

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigurationError when it is absent."""
        if not self.is_configured:
            raise ConfigurationError(MISSING_CREDENTIAL_MESSAGE)
        return self.gemini.api_key
