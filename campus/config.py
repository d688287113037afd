"""Application configuration module."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Storage settings ("memory" or "sql")
    STORAGE_BACKEND: str = "memory"

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./campus.db"
    SQL_ECHO: bool = False

    # API settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Campus Assessments"


# Create global settings instance
settings = Settings()
