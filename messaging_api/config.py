from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration - required
    DATABASE_URL: str

    LOG_LEVEL: str = "INFO"

    # Admin token verification - required, HS256 shared secret
    JWT_SECRET: str = Field(..., min_length=32)

    # Notification queue
    REDIS_URL: str = "redis://localhost:6379/0"
    CONTACT_QUEUE_NAME: str = "contact_messages"

    # Comma-separated list, empty disables CORS
    ALLOWED_ORIGINS: str = ""

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
