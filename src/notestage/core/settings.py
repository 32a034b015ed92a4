"""Application settings and configuration.

This module defines all configuration options for the note stage service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files. Only the
    composition root reads this object; components receive the values they need
    as constructor arguments.
    """

    # Application metadata
    app_name: str = Field(default="Note Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Database configuration
    database_url: str = Field(default="sqlite:///./notestage.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for the key-value cache
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    mention_cache_ttl_seconds: int = Field(default=3600, alias="MENTION_CACHE_TTL_SECONDS")

    # Federation addressing; an update may arrive through either origin
    federation_origin: str = Field(default="http://localhost:8000", alias="FEDERATION_ORIGIN")
    federation_canonical_origin: str | None = Field(
        default=None,
        alias="FEDERATION_CANONICAL_ORIGIN",
    )

    # Blob storage for note media
    media_root: str = Field(default="./media", alias="MEDIA_ROOT")
    media_base_url: str = Field(default="http://localhost:8000/media/", alias="MEDIA_BASE_URL")

    # Delivery relay (queueing, signing and retry live behind it)
    delivery_relay_url: str | None = Field(default=None, alias="DELIVERY_RELAY_URL")
    delivery_shared_secret: str | None = Field(default=None, alias="DELIVERY_SHARED_SECRET")
    delivery_audience: str = Field(default="delivery-relay", alias="DELIVERY_AUDIENCE")
    delivery_token_ttl_seconds: int = Field(default=300, alias="DELIVERY_TOKEN_TTL_SECONDS")
    delivery_http_timeout_seconds: float = Field(
        default=10.0,
        alias="DELIVERY_HTTP_TIMEOUT_SECONDS",
    )

    # Timeline assembly
    timeline_default_window: int = Field(default=50, alias="TIMELINE_DEFAULT_WINDOW")
    timeline_max_window: int = Field(default=100, alias="TIMELINE_MAX_WINDOW")
    recommendation_limit: int = Field(default=50, alias="RECOMMENDATION_LIMIT")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def effective_canonical_origin(self) -> str:
        """Return the alias origin, falling back to the primary one."""
        return self.federation_canonical_origin or self.federation_origin

    @property
    def delivery_enabled(self) -> bool:
        """Return True when a delivery relay is configured."""
        return bool(self.delivery_relay_url)


settings = Settings()  # type: ignore[call-arg]
