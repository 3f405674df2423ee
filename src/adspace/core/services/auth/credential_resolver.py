"""Bearer credential resolution: verification chain plus user provisioning."""

from collections.abc import Sequence

from loguru import logger

from src.adspace.core.errors import Unauthenticated, VerificationFailed
from src.adspace.core.models import Principal
from src.adspace.core.services.auth.verifiers import CredentialVerifier
from src.adspace.core.services.jwt.jwt_utils import preview_jwt
from src.adspace.core.services.user.user_provisioning import UserProvisioningService


class CredentialResolver:
    """Turns a raw bearer token into a Principal.

    Holds no state between calls. Built per request around a request-scoped
    user store; the verifier chain itself is shared application-wide.
    """

    def __init__(
        self,
        verifiers: Sequence[CredentialVerifier],
        provisioning: UserProvisioningService,
    ) -> None:
        self._verifiers = list(verifiers)
        self._provisioning = provisioning

    @property
    def verifier_names(self) -> list[str]:
        return [v.name for v in self._verifiers]

    async def verify(self, token: str) -> tuple[str, str]:
        """Run the verifier chain.

        Returns:
            ``(subject, verifier name)``

        Raises:
            InvalidCredential: the token is malformed (no verifier is consulted)
            Unauthenticated: every verifier failed
        """
        preview = preview_jwt(token)

        failures: list[str] = []
        for verifier in self._verifiers:
            try:
                subject = await verifier.verify(token, preview)
            except VerificationFailed as exc:
                logger.debug("Verifier {} failed: {}", verifier.name, exc)
                failures.append(f"{verifier.name}: {exc}")
                continue
            if subject:
                return subject, verifier.name
            failures.append(f"{verifier.name}: no subject")

        logger.info("Token rejected by all verifiers")
        raise Unauthenticated(error="; ".join(failures) or "No verifiers configured")

    async def authenticate(self, token: str) -> Principal:
        """Verify ``token`` and resolve (or provision) its local user.

        Raises:
            InvalidCredential, Unauthenticated, ProvisioningFailed
        """
        subject, verified_by = await self.verify(token)
        resolved = await self._provisioning.resolve(subject)
        logger.debug(
            "Authenticated {} as user {} via {}",
            subject,
            resolved.user.id,
            verified_by,
        )
        return Principal.from_user(resolved.user, verified_by)
