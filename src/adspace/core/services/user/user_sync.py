"""Mirrors identity provider user events into local user records."""

from enum import Enum
from typing import Any

from loguru import logger

from src.adspace.core.errors import DuplicateUserError
from src.adspace.core.services.clerk_client_service import profile_from_user_data
from src.adspace.core.services.user.user_provisioning import placeholder_email
from src.adspace.entities.core.user import Role, User, UserRepository


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    IGNORED = "ignored"


class UserSyncService:
    """Applies ``user.created``, ``user.updated`` and ``user.deleted`` events.

    Creation and update are both upserts keyed by the external id, so a user
    that was already provisioned on first request is updated in place, and an
    update for an unknown subject creates the record. Roles are never touched.
    """

    def __init__(self, users: UserRepository) -> None:
        self._users = users

    def apply(self, event_type: str, data: dict[str, Any]) -> SyncAction:
        """Apply one event.

        Raises:
            ValueError: the event data carries no user id
            UserStoreError: the change could not be stored
        """
        external_id = data.get("id") if isinstance(data, dict) else None
        if not external_id or not isinstance(external_id, str):
            raise ValueError("Event data has no user id")

        if event_type in ("user.created", "user.updated"):
            return self._upsert(external_id, data)
        if event_type == "user.deleted":
            if self._users.delete_by_external_id(external_id):
                logger.info("User {} deleted by provider event", external_id)
                return SyncAction.DELETED
            return SyncAction.IGNORED

        logger.debug("Ignoring provider event {}", event_type)
        return SyncAction.IGNORED

    def _upsert(self, external_id: str, data: dict[str, Any]) -> SyncAction:
        profile = profile_from_user_data(data)
        existing = self._users.get_by_external_id(external_id)
        if existing is None:
            try:
                user = self._users.create(
                    User(
                        external_id=external_id,
                        email=profile.email or placeholder_email(external_id),
                        first_name=profile.first_name or "",
                        last_name=profile.last_name or "",
                        image_url=profile.image_url or None,
                        role=Role.USER,
                    )
                )
                logger.info("User {} created from provider event", user.id)
                return SyncAction.CREATED
            except DuplicateUserError:
                # provisioned by a concurrent request
                existing = self._users.get_by_external_id(external_id)
                if existing is None:
                    raise

        changes: dict[str, Any] = {
            "first_name": profile.first_name or "",
            "last_name": profile.last_name or "",
            "image_url": profile.image_url or None,
        }
        if profile.email:
            changes["email"] = profile.email
        self._users.update(existing.model_copy(update=changes))
        logger.info("User {} updated from provider event", existing.id)
        return SyncAction.UPDATED
