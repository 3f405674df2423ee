from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from tests.utils import generate_rsa_key, mint_token, public_jwk

_KID = "ins_key_1"
_OTHER_KID = "ins_key_2"


@pytest.fixture(scope="session")
def signing_key():
    return generate_rsa_key()


@pytest.fixture(scope="session")
def foreign_key():
    """A key the issuer never published."""
    return generate_rsa_key()


@pytest.fixture
def kid_for_jwt() -> str:
    return _KID


@pytest.fixture
def jwks_data(signing_key) -> dict[str, Any]:
    return {"keys": [public_jwk(signing_key, _KID)]}


@pytest.fixture
def rotated_jwks_data(signing_key, foreign_key) -> dict[str, Any]:
    """Key set after a rotation that added ``_OTHER_KID``."""
    return {
        "keys": [public_jwk(signing_key, _KID), public_jwk(foreign_key, _OTHER_KID)]
    }


@pytest.fixture
def token_factory(signing_key, issuer: str) -> Callable[..., str]:
    """Mint RS256 session tokens signed by the published key."""

    def _make_token(
        sub: str | None = "ext_123",
        *,
        kid: str | None = _KID,
        key=None,
        iss: str | None = None,
        expires_in: int = 300,
        **claims: Any,
    ) -> str:
        payload: dict[str, Any] = {"iss": iss or issuer, **claims}
        if sub is not None:
            payload["sub"] = sub
        return mint_token(key or signing_key, kid, payload, expires_in=expires_in)

    return _make_token
