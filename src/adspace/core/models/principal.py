"""Authenticated principal and identity provider profile models."""

from pydantic import BaseModel, Field

from src.adspace.entities.core.user import Role, User


class Principal(BaseModel):
    """Request-scoped authenticated identity handed to route handlers."""

    local_user_id: str = Field(description="Internal user ID")
    external_id: str = Field(description="Identity provider subject identifier")
    role: Role = Field(description="Marketplace role of the local user")
    email: str = Field(description="Email of the local user")
    first_name: str = Field(default="", description="First name of the local user")
    last_name: str = Field(default="", description="Last name of the local user")
    verified_by: str = Field(description="Name of the verifier that accepted the credential")

    @classmethod
    def from_user(cls, user: User, verified_by: str) -> "Principal":
        return cls(
            local_user_id=user.id,
            external_id=user.external_id,
            role=user.role,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            verified_by=verified_by,
        )


class IdentityProfile(BaseModel):
    """Profile fields the identity provider knows about a subject."""

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None


class ProfileResult(BaseModel):
    """Outcome of a best-effort profile fetch: either a profile or an error."""

    profile: IdentityProfile | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.profile is not None

    @classmethod
    def success(cls, profile: IdentityProfile) -> "ProfileResult":
        return cls(profile=profile)

    @classmethod
    def failure(cls, error: str) -> "ProfileResult":
        return cls(error=error)
