"""Configuration management for GetChiDa."""

from pathlib import Path

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

    # Document store
    sqlite_db_path: str = Field(default="data/getchida.db", description="Path of the SQLite document store file")

    # OpenRouter Configuration
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key for LLM access")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Redis Configuration (optional)
    redis_url: str | None = Field(default=None, description="Redis connection URL (e.g., redis://localhost:6379)")

    # Web forms
    secret_key: str = Field(default="change-me-secret-key", description="Secret used to sign CSRF and flash cookies")
    environment: str = Field(default="development", description="Deployment environment name")

    # Reward settlement
    guard_double_settlement: bool = Field(
        default=False,
        description="Only award chi when a chore actually transitions from incomplete to complete",
    )

    # AI Model Configuration
    model_id: str = Field(
        default="anthropic/claude-3.5-sonnet",
        description="Model ID for OpenRouter (defaults to Claude 3.5 Sonnet)",
    )

    @property
    def is_production(self) -> bool:
        """Whether the app runs in production (enables secure cookies)."""
        return self.environment.lower() == "production"

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

    # Reward settlement
    CHORE_COMPLETION_CHI: int = 50
    CHI_WEEKLY_GOAL: int = 2000

    # Denormalization placeholders
    UNKNOWN_ASSIGNEE_NAME: str = "Unknown"
    UNKNOWN_ASSIGNEE_AVATAR_URL: str = "https://placehold.co/40x40.png"
    PROFILE_AVATAR_URL_TEMPLATE: str = "https://placehold.co/100x100.png?text={initial}"

    # Validation
    MIN_CHORE_NAME_LENGTH: int = 3
    MIN_PROFILE_NAME_LENGTH: int = 2
    MAX_NAME_LENGTH: int = 50

    # Cache TTLs
    CACHE_TTL_LEADERBOARD_SECONDS: int = 60  # 1 minute for leaderboard cache

    # Live queries
    MAX_SNAPSHOT_RECORDS: int = 1000

    # Redis Configuration
    REDIS_MAX_CONNECTIONS: int = 10  # Maximum connections in Redis connection pool

    # Web forms
    CSRF_TOKEN_MAX_AGE_SECONDS: int = 3600
    FLASH_MAX_AGE_SECONDS: int = 5

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent
    TEMPLATES_DIR: Path = PROJECT_ROOT / "templates"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
