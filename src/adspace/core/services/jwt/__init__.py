"""JWT service package."""

from .jwks import JWKSCache, JWKSCacheInMemory, JwksService
from .jwt_utils import JwtPreview, preview_jwt
from .jwt_verify import JwtVerificationService
