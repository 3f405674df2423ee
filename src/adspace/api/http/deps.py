"""FastAPI dependency implementations."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from fastapi import Depends, HTTPException, Request, status
from loguru import logger
from sqlmodel import Session
from svix.webhooks import Webhook

from src.adspace.api.http.app_data import ApplicationDependencies
from src.adspace.core.errors import AuthError, Forbidden, Unauthenticated
from src.adspace.core.models import Principal
from src.adspace.core.services import (
    ClerkClientService,
    CredentialResolver,
    CredentialVerifier,
    UserProvisioningService,
)
from src.adspace.entities.core.user import ADMIN_ROLES, Role, User, UserRepository


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    """Get the application-wide dependency container."""
    return request.app.state.app_dependencies


def get_db_session(request: Request) -> Iterator[Session]:
    """Yield a database session that is closed when the request ends."""
    app_deps = get_app_dependencies(request)
    session = app_deps.database_service.get_session()
    try:
        yield session
    finally:
        session.close()


def get_clerk_client(request: Request) -> ClerkClientService:
    """Get the identity provider client instance."""
    return get_app_dependencies(request).clerk_client


def get_verifiers(request: Request) -> list[CredentialVerifier]:
    """Get the ordered verifier chain."""
    return get_app_dependencies(request).verifiers


def get_user_webhook(request: Request) -> Webhook | None:
    """Signature verifier for provider user events; None when no secret is configured."""
    return get_app_dependencies(request).user_webhook


def get_user_repository(db: Session = Depends(get_db_session)) -> UserRepository:
    return UserRepository(db)


def get_credential_resolver(
    users: UserRepository = Depends(get_user_repository),
    verifiers: list[CredentialVerifier] = Depends(get_verifiers),
    clerk_client: ClerkClientService = Depends(get_clerk_client),
) -> CredentialResolver:
    """Build the resolver around the request-scoped user store."""
    return CredentialResolver(verifiers, UserProvisioningService(users, clerk_client))


def extract_bearer_token(request: Request) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header, if any."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):].strip()
    return token or None


async def get_current_principal(
    request: Request,
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> Principal:
    """Authenticate the request using a Bearer token, with JIT user provisioning."""
    token = extract_bearer_token(request)
    if token is None:
        logger.info("No valid authorization header for {}", request.url.path)
        raise Unauthenticated("No token provided")

    principal = await resolver.authenticate(token)
    request.state.principal = principal
    return principal


async def get_optional_principal(
    request: Request,
    resolver: CredentialResolver = Depends(get_credential_resolver),
) -> Principal | None:
    """Like get_current_principal, but any authentication failure yields None."""
    token = extract_bearer_token(request)
    if token is None:
        return None

    try:
        principal = await resolver.authenticate(token)
    except AuthError as exc:
        logger.warning("Optional auth failed: {}", exc.message)
        return None

    request.state.principal = principal
    return principal


def require_role(*roles: Role | str | Iterable[Role | str], message: str | None = None):
    """Create a dependency that requires the principal to hold one of ``roles``.

    Roles may be given as ``Role`` members, role names or collections of either.
    An unknown role name raises ``ValueError`` when the dependency is built.
    """
    allowed: set[Role] = set()
    for role in roles:
        if isinstance(role, str):
            allowed.add(Role(role))
        else:
            allowed.update(Role(r) for r in role)

    async def dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise Forbidden(message, error=f"Role {principal.role.value} not in {sorted(r.value for r in allowed)}")
        return principal

    return dep


require_admin = require_role(ADMIN_ROLES, message="Admin access required")


async def get_current_user(
    principal: Principal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
) -> User:
    """Load the full local user record of the authenticated principal."""
    user = users.get(principal.local_user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
