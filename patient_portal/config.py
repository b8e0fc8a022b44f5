from functools import lru_cache
from typing import List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field(default="Patient Portal Scheduling Service")
    cors_origins: List[AnyHttpUrl] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )
    api_base_url: AnyHttpUrl | None = Field(
        default=None
    )
    api_timeout: float = Field(
        default=10.0
    )
    api_token: str | None = Field(
        default=None
    )
    use_mock_data: bool = Field(
        default=True
    )
    availability_window_days: int = Field(
        default=30, ge=1, le=366
    )
    notification_timeout: float = Field(
        default=5.0
    )

    model_config = SettingsConfigDict(env_prefix="PORTAL_", case_sensitive=False)

    @field_validator("cors_origins", mode="before")
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
