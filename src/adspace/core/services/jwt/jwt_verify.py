"""JWT signature and claims verification against a JWK set."""

import time
from typing import Any

from authlib.jose import JoseError, JsonWebKey, jwt
from loguru import logger

from src.adspace.core.errors import VerificationFailed
from src.adspace.core.services.jwt.jwt_utils import JwtPreview, preview_jwt, select_jwk_set
from src.adspace.runtime.context import get_config


# ---------------------------- helpers ---------------------------------
def _as_list(v: str | list[str] | tuple[str, ...] | None) -> list[str]:
    return [v] if isinstance(v, str) else list(v or ())


class JwtVerificationService:
    def verify_with_key_set(
        self,
        token: str,
        jwks: dict[str, Any],
        *,
        expected_issuer: str | None = None,
        authorized_parties: list[str] | None = None,
        preview: JwtPreview | None = None,
    ) -> dict[str, Any]:
        """Verify ``token`` with the key from ``jwks`` matching its ``kid``.

        Args:
            token: Compact JWT
            jwks: Key set to verify against
            expected_issuer: When given, the ``iss`` claim must equal it
            authorized_parties: When non-empty, a present ``azp`` claim must be one of them
            preview: Already decoded preview of ``token``

        Returns:
            The verified claims

        Raises:
            VerificationFailed: on any key, signature or claim problem
        """
        cfg = get_config()
        pv = preview or preview_jwt(token)

        # alg allowlist
        if pv.alg not in cfg.jwt.allowed_algorithms:
            raise VerificationFailed(f"Disallowed JWT algorithm: {pv.alg}")

        if not pv.kid:
            raise VerificationFailed("No key ID in token header")

        jwk_set = select_jwk_set(jwks, pv.kid)
        if not jwk_set.get("keys"):
            raise VerificationFailed(f"No JWK matches kid={pv.kid}")

        claims_options: dict[str, Any] = {"exp": {"essential": True}}
        if expected_issuer:
            exp_iss = expected_issuer.rstrip("/")
            if pv.iss != exp_iss:
                raise VerificationFailed(f"Invalid issuer: {pv.iss}")
            claims_options["iss"] = {"essential": True, "values": [exp_iss, f"{exp_iss}/"]}

        # verify signature + registered claims
        try:
            verification_key = JsonWebKey.import_key_set(jwk_set)
            claims = jwt.decode(token, verification_key, claims_options=claims_options)
            claims.validate(leeway=cfg.jwt.clock_skew)
        except (JoseError, ValueError) as exc:
            raise VerificationFailed(f"JWT error: {exc}") from exc

        # extra temporal sanity
        now = int(time.time())
        for k, check in (
            ("exp", lambda v: now > int(v) + cfg.jwt.clock_skew),
            ("nbf", lambda v: now < int(v) - cfg.jwt.clock_skew),
            ("iat", lambda v: int(v) > now + cfg.jwt.clock_skew),
        ):
            v = claims.get(k)
            if v is not None and check(v):
                raise VerificationFailed(f"Invalid {k} with skew")

        if authorized_parties:
            azp = claims.get("azp")
            if azp and azp not in _as_list(authorized_parties):
                raise VerificationFailed(f"Invalid azp: {azp}")

        if not claims.get("sub"):
            raise VerificationFailed("Missing sub claim")

        logger.debug("Verified JWT for subject {} (kid={})", claims.get("sub"), pv.kid)
        return dict(claims)
