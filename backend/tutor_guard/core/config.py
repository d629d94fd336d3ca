"""Configuration settings for Tutor Guard."""

from typing import List

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

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # Prompting
    TUTOR_NAME: str = "StudyPals Tutor"

    # Session context
    SESSION_MAX_MESSAGES: int = Field(default=50, ge=1)

    # Memory claim validation
    MEMORY_CLAIM_THRESHOLD: float = Field(default=0.75, ge=0.0, le=1.0)

    # Resilience
    RESILIENCE_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    RESILIENCE_BASE_DELAY_SECONDS: float = Field(default=2.0, ge=0.0)
    RESILIENCE_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0.0)
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(default=5, ge=1)
    CIRCUIT_BREAKER_COOLDOWN_SECONDS: float = Field(default=300.0, ge=0.0)

    # Feature flags (rollout defaults)
    FEATURE_MEMORY_VALIDATION: bool = False
    FEATURE_MATH_VALIDATION: bool = False
    FEATURE_STYLE_ADAPTATION: bool = False
    FEATURE_PROFILE_STORAGE: bool = False
    FEATURE_ROLLOUT_PERCENTAGE: float = Field(default=0.0, ge=0.0, le=1.0)
    # Comma-separated user ids
    FEATURE_BETA_USERS: str = ""
    FEATURE_INTERNAL_USERS: str = ""

    @property
    def beta_users_list(self) -> List[str]:
        """Convert FEATURE_BETA_USERS string to a list."""
        return [user.strip() for user in self.FEATURE_BETA_USERS.split(",") if user.strip()]

    @property
    def internal_users_list(self) -> List[str]:
        """Convert FEATURE_INTERNAL_USERS string to a list."""
        return [user.strip() for user in self.FEATURE_INTERNAL_USERS.split(",") if user.strip()]


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()


# For convenience - create fresh instance each time to avoid caching issues
settings = get_settings()
