"""Core services exports."""

# Authentication
from .auth.credential_resolver import CredentialResolver
from .auth.verifiers import (
    CredentialVerifier,
    DelegatedVerifier,
    JwksVerifier,
    UnverifiedDecodeVerifier,
    build_verifier_chain,
)

# Identity provider
from .clerk_client_service import ClerkClientService

# Database Service
from .database.db_session import DbSessionService

# JWT Services
from .jwt.jwks import JWKSCache, JWKSCacheInMemory, JwksService
from .jwt.jwt_verify import JwtVerificationService

# User Services
from .user.user_provisioning import (
    ProvisioningStep,
    ResolvedUser,
    UserProvisioningService,
)
from .user.user_sync import SyncAction, UserSyncService

__all__ = [
    # Authentication
    "CredentialResolver",
    "CredentialVerifier",
    "DelegatedVerifier",
    "JwksVerifier",
    "UnverifiedDecodeVerifier",
    "build_verifier_chain",
    # Identity provider
    "ClerkClientService",
    # JWT Services
    "JWKSCache",
    "JWKSCacheInMemory",
    "JwksService",
    "JwtVerificationService",
    # User Services
    "ProvisioningStep",
    "ResolvedUser",
    "UserProvisioningService",
    "SyncAction",
    "UserSyncService",
    # Database Service
    "DbSessionService",
]
