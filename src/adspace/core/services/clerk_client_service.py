"""Client for the identity provider's (Clerk) Backend API."""

from typing import Any

import httpx
from loguru import logger

from src.adspace.core.errors import IdentityProviderError, JwksFetchError, VerificationFailed
from src.adspace.core.models import IdentityProfile, ProfileResult
from src.adspace.core.services.jwt.jwks import JwksService
from src.adspace.core.services.jwt.jwt_utils import JwtPreview, select_jwk_set
from src.adspace.core.services.jwt.jwt_verify import JwtVerificationService
from src.adspace.runtime.context import get_config


def primary_email(data: dict[str, Any]) -> str | None:
    """Primary address of a user object, falling back to the first listed."""
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    if addresses:
        return addresses[0].get("email_address")
    return None


def profile_from_user_data(data: dict[str, Any]) -> IdentityProfile:
    return IdentityProfile(
        email=primary_email(data),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        image_url=data.get("image_url"),
    )


class ClerkClientService:
    """Talks to the Backend API with the instance secret key.

    Delegated verification checks session tokens against the key set served
    by the authenticated Backend API, the same source the provider's own SDKs
    trust. Without a secret key the capability is unavailable.
    """

    def __init__(
        self,
        jwks_service: JwksService,
        jwt_verify_service: JwtVerificationService,
    ) -> None:
        self._jwks_service = jwks_service
        self._jwt_verify_service = jwt_verify_service

    @property
    def available(self) -> bool:
        return bool(get_config().clerk.secret_key)

    def _auth_headers(self) -> dict[str, str]:
        secret_key = get_config().clerk.secret_key
        if not secret_key:
            raise IdentityProviderError("Identity provider secret key not configured")
        return {"Authorization": f"Bearer {secret_key}"}

    def _url(self, path: str) -> str:
        return f"{get_config().clerk.api_url.rstrip('/')}{path}"

    async def verify_token(self, token: str, preview: JwtPreview) -> str:
        """Verify a session token and return its subject.

        Raises:
            VerificationFailed: the token is invalid or the provider is unavailable
        """
        try:
            headers = self._auth_headers()
        except IdentityProviderError as exc:
            raise VerificationFailed(str(exc)) from exc

        jwks_url = self._url("/v1/jwks")
        try:
            jwks = await self._jwks_service.fetch_jwks(jwks_url, headers=headers)
            if preview.kid and not select_jwk_set(jwks, preview.kid).get("keys"):
                # signing key may have rotated since the set was cached
                jwks = await self._jwks_service.fetch_jwks(
                    jwks_url, headers=headers, force_refresh=True
                )
        except JwksFetchError as exc:
            raise VerificationFailed(str(exc)) from exc

        claims = self._jwt_verify_service.verify_with_key_set(
            token,
            jwks,
            authorized_parties=get_config().clerk.authorized_parties,
            preview=preview,
        )
        return claims["sub"]

    async def get_user(self, subject: str) -> dict[str, Any]:
        """Fetch the raw user object for ``subject``.

        Raises:
            IdentityProviderError: the request failed or the provider is unavailable
        """
        headers = self._auth_headers()
        timeout = get_config().clerk.http_timeout_seconds
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.get(self._url(f"/v1/users/{subject}"), headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise IdentityProviderError(f"Failed to fetch user {subject}: {exc}") from exc
        if not isinstance(data, dict):
            raise IdentityProviderError(f"Unexpected user payload for {subject}")
        return data

    async def fetch_profile(self, subject: str) -> ProfileResult:
        """Best-effort profile lookup; failures are returned, not raised."""
        try:
            data = await self.get_user(subject)
        except IdentityProviderError as exc:
            logger.warning("Profile fetch failed for {}: {}", subject, exc)
            return ProfileResult.failure(str(exc))

        return ProfileResult.success(profile_from_user_data(data))
