"""User domain entity."""

from enum import Enum
from typing import Any

from pydantic import Field

from src.adspace.entities._base import Entity


class Role(str, Enum):
    """Roles a marketplace account can hold."""

    USER = "USER"
    ADVERTISER = "ADVERTISER"
    PROPERTY_OWNER = "PROPERTY_OWNER"
    SPACE_OWNER = "SPACE_OWNER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})

# Roles an administrator may assign through the role management endpoint.
ASSIGNABLE_ROLES = frozenset(
    {Role.USER, Role.PROPERTY_OWNER, Role.ADMIN, Role.SUPER_ADMIN}
)


class User(Entity):
    """Local user record for a principal known to the identity provider.

    ``external_id`` is the provider's subject identifier and the join key used
    on every authenticated request; ``id`` is ours and never leaves the system
    as an identity claim.
    """

    external_id: str = Field(description="Identity provider subject identifier")
    email: str = Field(description="User's email address")
    first_name: str = Field(default="", description="User's first name")
    last_name: str = Field(default="", description="User's last name")
    image_url: str | None = Field(default=None, description="Avatar URL")
    phone: str | None = Field(default=None, description="User's phone number")
    bio: str | None = Field(default=None, description="Free-form profile text")
    role: Role = Field(default=Role.USER, description="Marketplace role")

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __eq__(self, other: Any) -> bool:
        """Compare users by business attributes, ignoring timestamps."""
        if not isinstance(other, User):
            return False

        return (
            self.id == other.id
            and self.external_id == other.external_id
            and self.email == other.email
            and self.first_name == other.first_name
            and self.last_name == other.last_name
            and self.role == other.role
        )

    def __hash__(self) -> int:
        return hash((self.id, self.external_id))
