"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import AliasChoices, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """
    Raised at startup when required configuration is missing.

    The store endpoint and public API key are required before any component can be
    constructed, so this is fatal rather than recoverable.
    """

    reason = "missing-credentials"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Remote store - shared with the hosted frontend build (NEXT_PUBLIC_ prefix)
    store_url: str = Field(
        validation_alias=AliasChoices(
            "store_url", "STORE_URL", "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL",
        ),
    )
    store_api_key: str = Field(
        validation_alias=AliasChoices(
            "store_api_key",
            "STORE_API_KEY",
            "SUPABASE_ANON_KEY",
            "NEXT_PUBLIC_SUPABASE_ANON_KEY",
        ),
    )
    store_request_timeout: float = Field(
        default=30.0, validation_alias=AliasChoices("store_request_timeout", "STORE_REQUEST_TIMEOUT"),
    )

    # Change feed
    feed_path: str = Field(
        default="/realtime/v1/changes", validation_alias=AliasChoices("feed_path", "FEED_PATH"),
    )
    feed_retry_initial_seconds: float = Field(
        default=1.0,
        validation_alias=AliasChoices("feed_retry_initial_seconds", "FEED_RETRY_INITIAL_SECONDS"),
    )
    feed_retry_max_seconds: float = Field(
        default=30.0,
        validation_alias=AliasChoices("feed_retry_max_seconds", "FEED_RETRY_MAX_SECONDS"),
    )

    # Matches the title column width in the bookmarks table
    max_title_length: int = Field(
        default=500, validation_alias=AliasChoices("max_title_length", "MAX_TITLE_LENGTH"),
    )

    @model_validator(mode="after")
    def validate_credentials_present(self) -> "Settings":
        """Reject blank store credentials; an empty env var is as bad as a missing one."""
        if not self.store_url.strip() or not self.store_api_key.strip():
            raise ValueError(
                "Store URL and API key are required. "
                "Set STORE_URL and STORE_API_KEY environment variables.",
            )
        return self

    @property
    def store_base_url(self) -> str:
        """Store URL without a trailing slash, used as the HTTP client base URL."""
        return self.store_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Raises:
        ConfigError: If the store URL or API key is missing or blank.
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigError(
            "Your project's store URL and API key are required to create a store client! "
            "Please set STORE_URL and STORE_API_KEY environment variables.",
        ) from e
