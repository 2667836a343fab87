"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Entity store
    store_backend: Literal["memory", "sql"] = Field(
        default="sql",
        description="Entity store backend (memory, sql)",
    )
    database_url: str = Field(
        default="sqlite:///./videohub.db",
        description="SQLAlchemy connection string for the sql store backend",
    )
    store_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to each entity store call",
    )

    # Blob store
    blob_backend: Literal["stub", "local", "cloudinary"] = Field(
        default="local",
        description="Blob store backend (stub, local, cloudinary)",
    )
    blob_base_path: str = Field(
        default="./storage",
        description="Base directory for the local blob store",
    )
    blob_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout applied to each blob store call",
    )
    cloudinary_cloud_name: str | None = Field(default=None, description="Cloudinary cloud name")
    cloudinary_api_key: str | None = Field(default=None, description="Cloudinary API key")
    cloudinary_api_secret: str | None = Field(default=None, description="Cloudinary API secret")

    # Pagination
    default_page_limit: int = Field(
        default=10,
        description="Page size used when a view is requested without a limit",
    )
    max_page_limit: int = Field(
        default=100,
        description="Largest page size a view will serve",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


# Convenience alias
settings = get_settings()
