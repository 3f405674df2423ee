"""Error taxonomy for request authentication and the services behind it.

HTTP-facing errors subclass FastAPI's ``HTTPException`` so that they can be
raised from services and dependencies alike; the application renders all of
them with the ``{"success": false, "message": ...}`` envelope. ``error`` carries
internal detail that is only shown outside production.
"""

from fastapi import HTTPException, status


class AuthError(HTTPException):
    """Base class for authentication and authorization failures."""

    status_code: int = status.HTTP_401_UNAUTHORIZED
    default_message: str = "Authentication failed"

    def __init__(self, message: str | None = None, *, error: str | None = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)
        self.error = error

    @property
    def message(self) -> str:
        return str(self.detail)


class InvalidCredential(AuthError):
    """The bearer token is not a decodable compact JWT."""

    default_message = "Invalid or malformed token"


class Unauthenticated(AuthError):
    """No verification strategy accepted the credential (or none was sent)."""

    default_message = "Invalid or expired token"


class Forbidden(AuthError):
    """Authenticated, but the principal's role is not allowed."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class ProvisioningFailed(AuthError):
    """The credential was valid but no local user record could be stored."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Authentication error"


# --- internal errors (never rendered directly) ---


class VerificationFailed(Exception):
    """A single verification strategy could not verify the credential."""


class JwksFetchError(Exception):
    """The public key set could not be retrieved or parsed."""


class IdentityProviderError(Exception):
    """The identity provider's API could not be reached or answered an error."""


class UserStoreError(Exception):
    """The user store could not complete a read or write."""


class DuplicateUserError(UserStoreError):
    """A user with the same external identity already exists."""

    def __init__(self, external_id: str):
        super().__init__(f"User with external id {external_id!r} already exists")
        self.external_id = external_id
