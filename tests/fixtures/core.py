from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from sqlalchemy import StaticPool
from sqlmodel import Session, SQLModel, create_engine
from starlette.requests import Request

from src.adspace.entities.core.user import Role, User, UserRepository
from src.adspace.runtime.config.config_data import (
    AppConfig,
    AuthConfig,
    ClerkConfig,
    ConfigData,
)

_ISSUER = "https://clerk.adspace.test"
_API_URL = "https://api.clerk.test"
_SECRET_KEY = "sk_test_backend_secret"


@pytest.fixture
def issuer() -> str:
    return _ISSUER


@pytest.fixture
def clerk_api_url() -> str:
    return _API_URL


@pytest.fixture
def clerk_secret_key() -> str:
    return _SECRET_KEY


@pytest.fixture
def auth_test_config() -> ConfigData:
    """Both verification paths configured, unverified fallback off."""
    return ConfigData(
        app=AppConfig(environment="test"),
        clerk=ClerkConfig(secret_key=_SECRET_KEY, issuer=_ISSUER, api_url=_API_URL),
        auth=AuthConfig(allow_unverified_fallback=False, placeholder_email_domain="temp.com"),
    )


@pytest.fixture
def local_only_config() -> ConfigData:
    """No secret key: only local key verification is possible."""
    return ConfigData(
        app=AppConfig(environment="test"),
        clerk=ClerkConfig(secret_key=None, issuer=_ISSUER, api_url=_API_URL),
        auth=AuthConfig(allow_unverified_fallback=False),
    )


@pytest.fixture
def request_factory() -> Callable[[dict[str, str]], Request]:
    def _make_request(headers: dict[str, str]) -> Request:
        scope = {
            "type": "http",
            "headers": [
                (name.lower().encode("ascii"), value.encode("latin-1"))
                for name, value in headers.items()
            ],
            "method": "GET",
            "path": "/",
            "query_string": b"",
        }
        return Request(scope)

    return _make_request


@pytest.fixture
def session() -> Generator[Session]:
    """Create a fresh database session for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from src.adspace.entities.core.user import UserTable  # noqa: F401

    SQLModel.metadata.create_all(engine)

    with Session(engine, expire_on_commit=False) as session:
        try:
            yield session
        finally:
            session.rollback()
            session.close()
            engine.dispose()


@pytest.fixture
def user_repository(session: Session) -> UserRepository:
    return UserRepository(session)


@pytest.fixture
def make_user() -> Callable[..., User]:
    def _make_user(external_id: str = "ext_1", role: Role = Role.USER, **fields) -> User:
        fields.setdefault("email", f"{external_id}@example.com")
        fields.setdefault("first_name", "Test")
        fields.setdefault("last_name", "User")
        return User(external_id=external_id, role=role, **fields)

    return _make_user
