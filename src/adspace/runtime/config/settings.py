from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.adspace.runtime.config.config_data import ConfigData


class EnvironmentVariables(BaseSettings):
    """Simple primitive values loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Environment and deployment
    environment: Literal["development", "production", "test"] | None = Field(
        default=None
    )
    log_level: str | None = Field(default=None)

    # Infrastructure URLs
    database_url: str | None = Field(default=None)
    redis_url: str | None = Field(default=None)

    # Identity provider
    clerk_secret_key: str | None = Field(default=None)
    clerk_publishable_key: str | None = Field(default=None)
    clerk_webhook_secret: str | None = Field(default=None)

    def apply_to(self, config: ConfigData) -> ConfigData:
        """Return a copy of ``config`` with every variable that is set applied."""
        updated = config.model_copy(deep=True)
        if self.environment:
            updated.app.environment = self.environment
        if self.log_level:
            updated.logging.level = self.log_level
        if self.database_url:
            updated.database.url = self.database_url
        if self.clerk_secret_key:
            updated.clerk.secret_key = self.clerk_secret_key
        if self.clerk_publishable_key:
            updated.clerk.publishable_key = self.clerk_publishable_key
        if self.clerk_webhook_secret:
            updated.clerk.webhook_secret = self.clerk_webhook_secret
        if self.redis_url:
            updated.redis.url = self.redis_url
        return updated
