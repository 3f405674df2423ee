from dataclasses import dataclass

from svix.webhooks import Webhook

from src.adspace.api.http.middleware.limiter import RateLimiterType, build_rate_limiter
from src.adspace.core.services import (
    ClerkClientService,
    CredentialVerifier,
    DbSessionService,
    JWKSCacheInMemory,
    JwksService,
    JwtVerificationService,
    build_verifier_chain,
)
from src.adspace.runtime.context import get_config


@dataclass
class ApplicationDependencies:
    jwks_cache: JWKSCacheInMemory
    jwks_service: JwksService
    jwt_verify_service: JwtVerificationService
    clerk_client: ClerkClientService
    verifiers: list[CredentialVerifier]
    database_service: DbSessionService
    rate_limiter: RateLimiterType | None = None
    user_webhook: Webhook | None = None


def build_application_dependencies(
    database_service: DbSessionService | None = None,
) -> ApplicationDependencies:
    """Wire the application-wide services from the current configuration."""
    config = get_config()
    jwks_cache = JWKSCacheInMemory()
    jwks_service = JwksService(jwks_cache)
    jwt_verify_service = JwtVerificationService()
    clerk_client = ClerkClientService(jwks_service, jwt_verify_service)
    verifiers = build_verifier_chain(clerk_client, jwks_service, jwt_verify_service)
    webhook_secret = config.clerk.webhook_secret

    return ApplicationDependencies(
        jwks_cache=jwks_cache,
        jwks_service=jwks_service,
        jwt_verify_service=jwt_verify_service,
        clerk_client=clerk_client,
        verifiers=verifiers,
        database_service=database_service or DbSessionService(),
        rate_limiter=build_rate_limiter(config.rate_limiter, config.redis.url),
        user_webhook=Webhook(webhook_secret) if webhook_secret else None,
    )
