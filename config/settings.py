"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: Optional[str] = Field(
        None,
        description="Supabase project URL"
    )
    supabase_key: Optional[str] = Field(
        None,
        description="Supabase anon/service key used by the document store"
    )
    media_storage_bucket: str = Field(
        default="media",
        description="Storage bucket that receives downloaded media files"
    )

    # ===================
    # COLLECTIONS
    # ===================
    collections_config_path: str = Field(
        default="config/collections.json",
        description="JSON file holding the field tree of every importable collection"
    )
    identity_field: str = Field(
        default="id",
        min_length=1,
        description="Store-assigned identity field of every document"
    )
    default_locale: str = Field(
        default="en-GB",
        description="Locale used when an import does not specify one"
    )

    # ===================
    # IMPORT PIPELINE
    # ===================
    mapping_max_workers: int = Field(
        default=16,
        ge=1,
        le=256,
        description="Upper bound of rows mapped in parallel"
    )
    include_import_details: Optional[bool] = Field(
        None,
        description="Attach per-row outcomes to import results (defaults to debug)"
    )

    # ===================
    # MEDIA INGESTION
    # ===================
    media_batch_size: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Concurrent media downloads per upload field"
    )
    media_batch_pause_ms: int = Field(
        default=100,
        ge=0,
        le=5000,
        description="Pause between media batches in milliseconds"
    )
    media_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per media URL before giving up"
    )
    media_fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout of a single media download"
    )
    media_url_field: str = Field(
        default="url",
        description="Media document field that stores the source URL (dedup key)"
    )
    media_default_filename: str = Field(
        default="image.jpg",
        description="Filename used when the URL path has none"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def supabase_configured(self) -> bool:
        """Check if the Supabase document store can be reached."""
        return bool(self.supabase_url and self.supabase_key)

    @property
    def media_batch_pause_seconds(self) -> float:
        return self.media_batch_pause_ms / 1000

    @property
    def details_enabled(self) -> bool:
        """Whether import results carry per-row details."""
        if self.include_import_details is None:
            return self.debug
        return self.include_import_details


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
