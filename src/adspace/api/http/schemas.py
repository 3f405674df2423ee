"""Request and response models shared by the HTTP routers."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

from src.adspace.core.models import Principal
from src.adspace.entities.core.user import Role, User

T = TypeVar("T")


class UserOut(BaseModel):
    """Public representation of a local user record."""

    id: str
    external_id: str
    email: str
    first_name: str
    last_name: str
    image_url: str | None = None
    phone: str | None = None
    bio: str | None = None
    role: Role
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls.model_validate(user.model_dump())


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: str | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class UserListResponse(BaseModel):
    success: bool = True
    data: list[UserOut]
    pagination: Pagination


class AuthMeResponse(BaseModel):
    success: bool = True
    message: str
    user: Principal | None = None


class WebhookAck(BaseModel):
    success: bool = True
    received: bool = True
    action: str


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile; omitted fields stay as they are."""

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=50)
    bio: str | None = Field(default=None, max_length=2000)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _names_not_null(cls, value):
        if value is None:
            raise ValueError("must be a string, not null")
        return value


class RoleUpdate(BaseModel):
    role: str
