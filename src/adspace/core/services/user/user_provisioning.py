"""Local user lookup with just-in-time provisioning."""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from loguru import logger

from src.adspace.core.errors import ProvisioningFailed, UserStoreError
from src.adspace.core.models import IdentityProfile, ProfileResult
from src.adspace.entities.core.user import Role, User
from src.adspace.runtime.context import get_config


class UserStore(Protocol):
    def get_by_external_id(self, external_id: str) -> User | None: ...

    def create(self, user: User) -> User: ...


class ProfileSource(Protocol):
    async def fetch_profile(self, subject: str) -> ProfileResult: ...


class ProvisioningStep(str, Enum):
    """Where resolution of a subject ended."""

    LOOKUP = "lookup"
    CREATE = "create"
    RELOOKUP = "relookup"
    MINIMAL_CREATE = "minimal_create"


@dataclass(frozen=True)
class ResolvedUser:
    user: User
    step: ProvisioningStep

    @property
    def created(self) -> bool:
        return self.step in (ProvisioningStep.CREATE, ProvisioningStep.MINIMAL_CREATE)


def placeholder_email(external_id: str) -> str:
    domain = get_config().auth.placeholder_email_domain
    return f"user_{external_id}@{domain}"


class UserProvisioningService:
    """Resolves a verified subject to its Local User Record.

    Steps: lookup, then create (with provider or placeholder profile), then
    on failure a single re-lookup, then a minimal create. Only when the last
    step fails is the request failed with ProvisioningFailed.
    """

    def __init__(self, store: UserStore, profiles: ProfileSource) -> None:
        self._store = store
        self._profiles = profiles

    def _new_user(self, external_id: str, profile: IdentityProfile | None) -> User:
        if profile is None:
            return User(
                external_id=external_id,
                email=placeholder_email(external_id),
                first_name="User",
                last_name="",
                role=Role.USER,
            )
        return User(
            external_id=external_id,
            email=profile.email or placeholder_email(external_id),
            first_name=profile.first_name or "",
            last_name=profile.last_name or "",
            image_url=profile.image_url or None,
            role=Role.USER,
        )

    def _minimal_user(self, external_id: str) -> User:
        return User(
            external_id=external_id,
            email=placeholder_email(external_id),
            first_name="User",
            role=Role.USER,
        )

    async def resolve(self, external_id: str) -> ResolvedUser:
        try:
            user = self._store.get_by_external_id(external_id)
        except UserStoreError as exc:
            logger.error("User lookup for {} failed: {}", external_id, exc)
            raise ProvisioningFailed(error=str(exc)) from exc
        if user is not None:
            return ResolvedUser(user, ProvisioningStep.LOOKUP)

        logger.info("Provisioning new user for {}", external_id)
        result = await self._profiles.fetch_profile(external_id)
        if not result.ok:
            logger.info("Using placeholder profile for {}: {}", external_id, result.error)

        try:
            user = self._store.create(self._new_user(external_id, result.profile))
            logger.info("User {} created for {}", user.id, external_id)
            return ResolvedUser(user, ProvisioningStep.CREATE)
        except UserStoreError as exc:
            logger.warning("Creating user for {} failed: {}", external_id, exc)

        try:
            user = self._store.get_by_external_id(external_id)
        except UserStoreError as exc:
            logger.warning("Re-lookup for {} failed: {}", external_id, exc)
            user = None
        if user is not None:
            logger.info("User for {} was created concurrently: {}", external_id, user.id)
            return ResolvedUser(user, ProvisioningStep.RELOOKUP)

        try:
            user = self._store.create(self._minimal_user(external_id))
            logger.info("Minimal user {} created for {}", user.id, external_id)
            return ResolvedUser(user, ProvisioningStep.MINIMAL_CREATE)
        except UserStoreError as exc:
            logger.error("Provisioning failed for {}: {}", external_id, exc)
            raise ProvisioningFailed(error=str(exc)) from exc
