"""
Configuration and settings for the taskboard service.
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
    port: int = Field(default=5000)
    frontend_url: str = Field(default="http://localhost:5173")
    log_level: str = Field(default="INFO")

    # Database (any SQLAlchemy URL; Postgres expected in production)
    database_url: Optional[str] = Field(default=None)

    # Session tokens
    jwt_secret: str = Field(default="secret")
    jwt_expire: str = Field(default="2d")

    # S3-compatible storage for profile images
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    storage_public_url: Optional[str] = Field(default=None)
    max_image_bytes: int = Field(default=10 * 1024 * 1024)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="TASKBOARD_USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
