"""Application configuration loading via Pydantic settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    cf_api_url: str = Field(..., alias="CF_API_URL")
    cf_username: str | None = Field(default=None, alias="CF_USERNAME")
    cf_password: str | None = Field(default=None, alias="CF_PASSWORD")
    cf_client_id: str = Field(default="cf", alias="CF_CLIENT_ID")
    cf_client_secret: str = Field(default="", alias="CF_CLIENT_SECRET")
    cf_skip_ssl_validation: bool = Field(default=False, alias="CF_SKIP_SSL_VALIDATION")
    cf_request_timeout: float = Field(default=30.0, gt=0.0, alias="CF_REQUEST_TIMEOUT")

    metrics_namespace: str = Field(default="cf", alias="METRICS_NAMESPACE")
    metrics_environment: str = Field(default="", alias="METRICS_ENVIRONMENT")
    metrics_deployment: str = Field(default="", alias="METRICS_DEPLOYMENT")

    applications_refresh_interval: float = Field(default=300.0, gt=0.0, alias="APPLICATIONS_REFRESH_INTERVAL")
    organizations_concurrency: int = Field(default=10, ge=1, alias="ORGANIZATIONS_CONCURRENCY")
    spaces_concurrency: int = Field(default=10, ge=1, alias="SPACES_CONCURRENCY")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("cf_api_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()  # type: ignore[call-arg]
