"""
Configuration and settings for the EchoWorld service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    site_url: str = Field(default="http://localhost:3000", env="SITE_URL")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # S3-compatible object storage
    s3_endpoint: Optional[str] = Field(default=None, env="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, env="S3_REGION")
    s3_bucket: Optional[str] = Field(default=None, env="S3_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )
    public_storage_base_url: Optional[str] = Field(
        default=None, env="PUBLIC_STORAGE_BASE_URL"
    )

    # Realtime fan-out (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_channel_prefix: str = Field(
        default="echoworld", env="REDIS_CHANNEL_PREFIX"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    # Accounts
    session_ttl_seconds: int = Field(
        default=30 * 24 * 3600, env="SESSION_TTL_SECONDS"
    )
    password_reset_ttl_seconds: int = Field(
        default=3600, env="PASSWORD_RESET_TTL_SECONDS"
    )
    account_retention_days: int = Field(
        default=30, env="ACCOUNT_RETENTION_DAYS"
    )
    minimum_age: int = Field(default=16, env="MINIMUM_AGE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
