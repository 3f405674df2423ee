"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

import base64
import binascii
from typing import Literal

from pydantic import BaseModel, Field, computed_field


class CORSConfig(BaseModel):
    """CORS configuration for the application."""

    origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]
    )
    allow_credentials: bool = True
    allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization", "X-Requested-With"]
    )


def frontend_api_from_publishable_key(publishable_key: str) -> str | None:
    """Decode the frontend API host embedded in a Clerk publishable key.

    Publishable keys look like ``pk_test_<base64("<frontend-api>$")>``.
    Returns None when the key does not follow that shape.
    """
    parts = publishable_key.split("_", 2)
    if len(parts) != 3 or parts[0] != "pk" or not parts[2]:
        return None
    encoded = parts[2]
    try:
        decoded = base64.b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not decoded.endswith("$"):
        return None
    host = decoded[:-1]
    return host or None


class ClerkConfig(BaseModel):
    """Identity provider (Clerk) configuration."""

    secret_key: str | None = Field(
        default=None, description="Backend API secret key (sk_...)"
    )
    publishable_key: str | None = Field(
        default=None, description="Publishable key (pk_...) used to derive the issuer"
    )
    issuer: str | None = Field(
        default=None,
        description="Explicit token issuer; overrides the publishable key derivation",
    )
    api_url: str = Field(
        default="https://api.clerk.com", description="Backend API base URL"
    )
    authorized_parties: list[str] = Field(
        default_factory=list,
        description="Accepted azp values for delegated verification (empty = skip check)",
    )
    http_timeout_seconds: float = Field(
        default=5.0, description="Timeout applied to every identity provider call"
    )
    webhook_secret: str | None = Field(
        default=None, description="Signing secret (whsec_...) of the user event webhook"
    )

    @computed_field
    @property
    def expected_issuer(self) -> str | None:
        """Issuer that locally verified tokens must carry."""
        if self.issuer:
            return self.issuer.rstrip("/")
        if self.publishable_key:
            host = frontend_api_from_publishable_key(self.publishable_key)
            if host:
                return f"https://{host}"
        return None

    @computed_field
    @property
    def jwks_uri(self) -> str | None:
        """Public key set endpoint of the frontend API."""
        issuer = self.expected_issuer
        return f"{issuer}/.well-known/jwks.json" if issuer else None


class RateLimiterConfig(BaseModel):
    """Per-client request quota applied to every route."""

    enabled: bool = Field(default=True, description="Enable rate limiting")
    requests: int = Field(default=100, description="Requests allowed per window")
    window_ms: int = Field(default=15 * 60 * 1000, description="Window length in milliseconds")
    per_endpoint: bool = Field(
        default=False, description="Count each route separately instead of per client"
    )
    per_method: bool = Field(
        default=False, description="Count each HTTP method separately"
    )


class RedisConfig(BaseModel):
    """Redis used as the shared rate limit store."""

    url: str | None = Field(
        default=None, description="Redis URL; unset keeps quotas in process memory"
    )


class AuthConfig(BaseModel):
    """Request authentication pipeline configuration."""

    allow_unverified_fallback: bool = Field(
        default=False,
        description=(
            "UNSAFE: accept the subject of a token whose signature could not be "
            "verified. Development only; refused in production."
        ),
    )
    placeholder_email_domain: str = Field(
        default="temp.com",
        description="Domain of the synthesized email for users without a known profile",
    )
    jwks_cache_ttl_seconds: int = Field(
        default=3600, description="How long fetched key sets are reused"
    )


class JWTConfig(BaseModel):
    """JWT validation configuration."""

    allowed_algorithms: list[str] = Field(
        default_factory=lambda: ["RS256"],
        description="JWT algorithms allowed for token validation",
    )
    clock_skew: int = Field(default=60, description="Clock skew tolerance in seconds")


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="plain", description="Log format")
    file: str | None = Field(default=None, description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(BaseModel):
    """Database configuration model."""

    url: str = Field(
        default="sqlite:///./database.db",
        description="Database connection URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=5000, description="Application port")
    cors: CORSConfig = Field(
        default_factory=CORSConfig, description="CORS configuration"
    )

    @property
    def expose_error_details(self) -> bool:
        """Whether internal error text may be returned to clients."""
        return self.environment != "production"


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    clerk: ClerkConfig = Field(
        default_factory=ClerkConfig, description="Identity provider configuration"
    )
    auth: AuthConfig = Field(
        default_factory=AuthConfig, description="Authentication pipeline configuration"
    )
    jwt: JWTConfig = Field(
        default_factory=JWTConfig, description="JWT validation configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    rate_limiter: RateLimiterConfig = Field(
        default_factory=RateLimiterConfig, description="Rate limiter configuration"
    )
    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
