"""Configuration management for planboard."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


StorageBackend = Literal["memory", "sqlite", "pocketbase"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Persistence backend, selected once at startup
    storage_backend: StorageBackend = Field(
        default="sqlite", description="Persistence backend: memory, sqlite or pocketbase"
    )
    sqlite_db_path: str = Field(default="planboard.db", description="SQLite database file for the local backend")

    # PocketBase Configuration
    pocketbase_url: str = Field(default="http://127.0.0.1:8090", description="PocketBase server URL")
    pocketbase_admin_email: str | None = Field(default=None, description="PocketBase admin email for schema sync")
    pocketbase_admin_password: str | None = Field(
        default=None, description="PocketBase admin password for schema sync"
    )

    # Open-Meteo Configuration
    geocoding_url: str = Field(
        default="https://geocoding-api.open-meteo.com/v1/search", description="Open-Meteo geocoding endpoint"
    )
    forecast_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast", description="Open-Meteo daily forecast endpoint"
    )
    weather_language: str = Field(default="en", description="Language for geocoding results")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30
    WEATHER_TIMEOUT_SECONDS: float = 10.0

    # City autocomplete
    CITY_SEARCH_MIN_CHARS: int = 3
    CITY_SEARCH_RESULT_LIMIT: int = 5

    # Profiles
    MAX_PROFILE_NAME_LENGTH: int = 50
    PROFILE_COLORS: tuple[str, ...] = (
        "#60a5fa",  # blue
        "#f472b6",  # pink
        "#4ade80",  # green
        "#facc15",  # yellow
        "#a78bfa",  # violet
        "#fb923c",  # orange
        "#2dd4bf",  # teal
        "#f87171",  # red
    )

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
