"""Credential verification strategies.

Each strategy either returns the verified subject identifier or raises
``VerificationFailed``; the resolver tries them in order and stops at the
first success. Strategies are listed from most to least trusted.
"""

from abc import ABC, abstractmethod

from loguru import logger

from src.adspace.core.errors import JwksFetchError, VerificationFailed
from src.adspace.core.services.clerk_client_service import ClerkClientService
from src.adspace.core.services.jwt.jwks import JwksService
from src.adspace.core.services.jwt.jwt_utils import JwtPreview, select_jwk_set
from src.adspace.core.services.jwt.jwt_verify import JwtVerificationService
from src.adspace.runtime.context import get_config


class CredentialVerifier(ABC):
    name: str = "verifier"

    @abstractmethod
    async def verify(self, token: str, preview: JwtPreview) -> str:
        """Return the subject of ``token`` or raise VerificationFailed."""
        raise NotImplementedError


class DelegatedVerifier(CredentialVerifier):
    """Verification through the identity provider's own service."""

    name = "delegated"

    def __init__(self, clerk_client: ClerkClientService) -> None:
        self._clerk_client = clerk_client

    async def verify(self, token: str, preview: JwtPreview) -> str:
        if not self._clerk_client.available:
            raise VerificationFailed("Delegated verification unavailable")
        return await self._clerk_client.verify_token(token, preview)


class JwksVerifier(CredentialVerifier):
    """Local signature check against the issuer's published key set."""

    name = "jwks"

    def __init__(
        self,
        jwks_service: JwksService,
        jwt_verify_service: JwtVerificationService,
    ) -> None:
        self._jwks_service = jwks_service
        self._jwt_verify_service = jwt_verify_service

    async def verify(self, token: str, preview: JwtPreview) -> str:
        clerk_cfg = get_config().clerk
        issuer = clerk_cfg.expected_issuer
        jwks_url = clerk_cfg.jwks_uri
        if not issuer or not jwks_url:
            raise VerificationFailed("No expected issuer configured")
        if not preview.kid:
            raise VerificationFailed("No key ID in token header")
        if preview.iss != issuer:
            raise VerificationFailed(f"Unexpected issuer: {preview.iss}")

        try:
            jwks = await self._jwks_service.fetch_jwks(jwks_url)
            if not select_jwk_set(jwks, preview.kid).get("keys"):
                jwks = await self._jwks_service.fetch_jwks(jwks_url, force_refresh=True)
        except JwksFetchError as exc:
            raise VerificationFailed(str(exc)) from exc

        claims = self._jwt_verify_service.verify_with_key_set(
            token, jwks, expected_issuer=issuer, preview=preview
        )
        return claims["sub"]


class UnverifiedDecodeVerifier(CredentialVerifier):
    """UNSAFE: trusts the subject claim without checking the signature.

    Only ever part of the chain when ``auth.allow_unverified_fallback`` is
    enabled outside production.
    """

    name = "unverified"

    async def verify(self, token: str, preview: JwtPreview) -> str:
        subject = preview.sub
        if not subject:
            raise VerificationFailed("No user ID in decoded token")
        logger.warning("Accepting UNVERIFIED token for subject {}", subject)
        return subject


def build_verifier_chain(
    clerk_client: ClerkClientService,
    jwks_service: JwksService,
    jwt_verify_service: JwtVerificationService,
) -> list[CredentialVerifier]:
    """Assemble the ordered strategy list from the current configuration.

    Raises:
        RuntimeError: the unverified fallback is enabled in production
    """
    config = get_config()
    chain: list[CredentialVerifier] = [
        DelegatedVerifier(clerk_client),
        JwksVerifier(jwks_service, jwt_verify_service),
    ]
    if config.auth.allow_unverified_fallback:
        if config.app.environment == "production":
            raise RuntimeError(
                "auth.allow_unverified_fallback must not be enabled in production"
            )
        logger.warning(
            "Unverified token fallback is ENABLED; signatures are not required"
        )
        chain.append(UnverifiedDecodeVerifier())
    return chain
