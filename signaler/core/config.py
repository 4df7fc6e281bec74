"""Application configuration for the signaling relay."""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

GOOGLE_STUN_URLS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
    "stun:stun2.l.google.com:19302",
    "stun:stun3.l.google.com:19302",
    "stun:stun4.l.google.com:19302",
]

REQUIRED_ENV = ("xirsys_secret", "xirsys_url")


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3003)
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    users_per_room_limit: int = Field(default=100, ge=1)

    xirsys_url: str = Field(default="")
    xirsys_secret: str = Field(default="")
    ice_fallback_urls: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(GOOGLE_STUN_URLS))
    ice_request_timeout: float = Field(default=10.0, gt=0)

    ws_ping_interval: float = Field(default=3.0)
    ws_ping_timeout: float = Field(default=7.5)

    @field_validator("cors_allow_origins", "ice_fallback_urls", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        """Allow comma-separated env values for list settings."""

        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def missing_required_settings(self) -> list[str]:
        """Names of required environment variables that are unset."""

        return [name.upper() for name in REQUIRED_ENV if not getattr(self, name).strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
