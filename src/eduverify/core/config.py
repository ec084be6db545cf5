"""Application configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="eduverify", description="Application name")
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development", description="Runtime environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # API
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")
    allowed_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:8080"],
        description="CORS allowed origins",
    )

    # Database
    database_backend: Literal["sqlite", "postgres"] = Field(
        default="sqlite",
        description="Redemption store backend (sqlite for offline devices)",
    )
    sqlite_path: str = Field(
        default="eduverify.db", description="Local SQLite database file"
    )
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_user: str = Field(default="postgres", description="PostgreSQL user")
    db_password: str = Field(default="postgres", description="PostgreSQL password")
    db_name: str = Field(default="eduverify", description="PostgreSQL database name")
    auto_create_tables: bool = Field(
        default=True, description="Create missing tables on startup"
    )

    # Redemptions
    redemption_expiry_days: int = Field(
        default=7, gt=0, description="Default validity window of a redemption"
    )
    code_generation_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts before giving up on a colliding code or token",
    )
    store_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single redemption store round-trip",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct async database URL for the selected backend."""
        if self.database_backend == "sqlite":
            return f"sqlite+aiosqlite:///{self.sqlite_path}"
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Construct synchronous database URL for migrations."""
        if self.database_backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def is_offline_store(self) -> bool:
        """Whether redemptions live in a local on-device database."""
        return self.database_backend == "sqlite"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
