"""User repository for data access operations."""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from src.adspace.core.errors import DuplicateUserError, UserStoreError
from src.adspace.entities.core.user.entity import Role, User
from src.adspace.entities.core.user.table import UserTable


class UserRepository:
    """Data-access layer for users."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, user_id: str) -> User | None:
        row = self._session.get(UserTable, user_id)
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def get_by_external_id(self, external_id: str) -> User | None:
        """Raises UserStoreError when the database cannot be read."""
        statement = select(UserTable).where(UserTable.external_id == external_id)
        try:
            row = self._session.exec(statement).first()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise UserStoreError(str(exc)) from exc
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def create(self, user: User) -> User:
        """Insert ``user`` and commit.

        Raises:
            DuplicateUserError: another row already holds ``user.external_id``
            UserStoreError: any other database failure
        """
        row = UserTable.model_validate(user.model_dump())
        self._session.add(row)
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateUserError(user.external_id) from exc
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise UserStoreError(str(exc)) from exc
        self._session.refresh(row)
        return User.model_validate(row, from_attributes=True)

    def update(self, user: User) -> User | None:
        row = self._session.get(UserTable, user.id)
        if row is None:
            return None
        data = user.model_dump(exclude={"id", "created_at", "updated_at"})
        for key, value in data.items():
            setattr(row, key, value)
        row.updated_at = datetime.now(UTC)
        self._session.add(row)
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error("Failed to update user {}: {}", user.id, exc)
            raise UserStoreError(str(exc)) from exc
        self._session.refresh(row)
        return User.model_validate(row, from_attributes=True)

    def delete_by_external_id(self, external_id: str) -> bool:
        """Delete the user holding ``external_id``; False when there is none."""
        statement = select(UserTable).where(UserTable.external_id == external_id)
        try:
            row = self._session.exec(statement).first()
            if row is None:
                return False
            self._session.delete(row)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error("Failed to delete user {}: {}", external_id, exc)
            raise UserStoreError(str(exc)) from exc
        return True

    def _filtered(self, statement, role: Role | None, search: str | None):
        if role is not None:
            statement = statement.where(UserTable.role == role)
        if search:
            pattern = f"%{search.lower()}%"
            statement = statement.where(
                or_(
                    func.lower(UserTable.email).like(pattern),
                    func.lower(UserTable.first_name).like(pattern),
                    func.lower(UserTable.last_name).like(pattern),
                )
            )
        return statement

    def list_users(
        self,
        *,
        role: Role | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> list[User]:
        """Newest users first, optionally filtered by role and a case-insensitive search."""
        statement = self._filtered(select(UserTable), role, search)
        statement = (
            statement.order_by(col(UserTable.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        rows = self._session.exec(statement).all()
        return [User.model_validate(row, from_attributes=True) for row in rows]

    def count_users(self, *, role: Role | None = None, search: str | None = None) -> int:
        statement = self._filtered(select(func.count()).select_from(UserTable), role, search)
        return int(self._session.exec(statement).one())
