"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # General
    APP_NAME: str = "Workflow Execution Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production, testing

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./workflows.db"
    SQLALCHEMY_ECHO: bool = False

    # Retry defaults for step execution (milliseconds)
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY_MS: int = 1000
    RETRY_MAX_DELAY_MS: int = 30000
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    # Handler limits
    HTTP_DEFAULT_TIMEOUT_MS: int = 30000
    HTTP_ALLOW_PRIVATE_NETWORKS: bool = False
    DELAY_MAX_MS: int = 3_600_000  # 1 hour
    REPEAT_MAX_ITERATIONS: int = 1000

    # Integrations
    SLACK_API_URL: str = "https://slack.com/api/chat.postMessage"

    # Persisted step output summaries
    OUTPUT_SUMMARY_MAX_CHARS: int = 10000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get engine settings.

    Uses caching to ensure settings are loaded only once.

    Returns:
        Settings object with all configuration values
    """
    return Settings()
