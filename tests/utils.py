import base64
import json
import time
from datetime import UTC, datetime
from typing import Any

from authlib.jose import JsonWebKey, jwt
from svix.webhooks import Webhook


def generate_rsa_key():
    return JsonWebKey.generate_key("RSA", 2048, is_private=True)


def public_jwk(key, kid: str) -> dict[str, Any]:
    jwk = dict(key.as_dict(is_private=False))
    jwk.update({"kid": kid, "use": "sig"})
    return jwk


def mint_token(
    key,
    kid: str | None,
    claims: dict[str, Any],
    *,
    alg: str = "RS256",
    expires_in: int = 300,
) -> str:
    now = int(time.time())
    payload = {"iat": now, "nbf": now, "exp": now + expires_in}
    payload.update(claims)
    header: dict[str, Any] = {"alg": alg, "typ": "JWT"}
    if kid is not None:
        header["kid"] = kid
    token = jwt.encode(header, payload, key.as_pem(is_private=True))
    return token.decode("ascii") if isinstance(token, bytes) else token


def _b64url(data: dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def unsigned_token(header: dict[str, Any], claims: dict[str, Any]) -> str:
    """Compact JWT with a syntactically valid but meaningless signature."""
    return f"{_b64url(header)}.{_b64url(claims)}.c2lnbmF0dXJl"


def signed_webhook(
    secret: str, event: dict[str, Any], msg_id: str = "msg_2abc"
) -> tuple[str, dict[str, str]]:
    """Body and svix headers of a user event signed with ``secret``."""
    body = json.dumps(event)
    timestamp = datetime.now(UTC)
    return body, {
        "Content-Type": "application/json",
        "svix-id": msg_id,
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": Webhook(secret).sign(msg_id, timestamp, body),
    }
