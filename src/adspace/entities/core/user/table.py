"""User database table model."""

from sqlalchemy import Column, String
from sqlmodel import Field

from src.adspace.entities._base import EntityTable
from src.adspace.entities.core.user.entity import Role


class UserTable(EntityTable, table=True):
    """Database persistence model for users.

    The unique constraint on ``external_id`` is what keeps concurrent first
    requests for the same subject from producing two rows.
    """

    __tablename__ = "users"

    external_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True)
    )
    email: str = Field(sa_column=Column(String(320), nullable=False, index=True))
    first_name: str = ""
    last_name: str = ""
    image_url: str | None = None
    phone: str | None = None
    bio: str | None = None
    role: Role = Field(default=Role.USER, index=True)
