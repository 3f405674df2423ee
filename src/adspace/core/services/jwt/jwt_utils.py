import base64
import json
from dataclasses import dataclass
from typing import Any, Final

from src.adspace.core.errors import InvalidCredential

# ---------------- tunables ----------------
MAX_JWT_CHARS: Final = 8192
MAX_SEGMENT_CHARS: Final = 8192
MAX_HEADER_BYTES: Final = 8 * 1024
MAX_PAYLOAD_BYTES: Final = 64 * 1024
_ALLOWED: Final = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_."
)  # no '='


# --------------- one-pass prefilter ---------------
def _prefilter_compact_jwt(token: str) -> tuple[str, str, str]:
    if not token or len(token) > MAX_JWT_CHARS:
        raise InvalidCredential(error="Invalid JWT size")
    first = second = -1
    for i, ch in enumerate(token):
        if ch not in _ALLOWED:
            raise InvalidCredential(error="Invalid JWT characters")
        if ch == ".":
            if first < 0:
                first = i
            elif second < 0:
                second = i
            else:  # third dot
                raise InvalidCredential(error="Invalid JWT format")
    # require exactly two dots and non-empty segments
    if first <= 0 or second - first <= 1 or second >= len(token) - 1:
        raise InvalidCredential(error="Invalid JWT format")
    h, p, s = token[:first], token[first + 1 : second], token[second + 1 :]
    if (
        len(h) > MAX_SEGMENT_CHARS
        or len(p) > MAX_SEGMENT_CHARS
        or len(s) > MAX_SEGMENT_CHARS
    ):
        raise InvalidCredential(error="Invalid JWT segment size")
    return h, p, s


def _b64url_decode_unpadded(seg: str, what: str, max_bytes: int) -> bytes:
    pad = (-len(seg)) % 4
    try:
        raw = base64.urlsafe_b64decode((seg + "=" * pad).encode("ascii"))
    except ValueError as e:
        raise InvalidCredential(error=f"Invalid base64url in {what}") from e
    if len(raw) > max_bytes:
        raise InvalidCredential(error=f"{what} too large")
    return raw


def _decode_json_object(raw: bytes, what: str) -> dict[str, Any]:
    try:
        obj = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise InvalidCredential(error=f"Non-UTF8 {what}") from e
    except json.JSONDecodeError as e:
        raise InvalidCredential(error=f"Invalid JSON in {what}") from e
    if not isinstance(obj, dict):
        raise InvalidCredential(error=f"{what} must be a JSON object")
    return obj


@dataclass(frozen=True)
class JwtPreview:
    """Unverified view of a compact JWT: decoded header and claims."""

    header: dict[str, Any]
    claims: dict[str, Any]
    alg: str | None
    kid: str | None
    iss: str | None

    @property
    def sub(self) -> str | None:
        sub = self.claims.get("sub")
        return sub if isinstance(sub, str) and sub else None


def preview_jwt(token: str) -> JwtPreview:
    """Split and decode header+payload exactly once.

    Raises:
        InvalidCredential: the token is not a well-formed compact JWT
    """
    h_seg, p_seg, _ = _prefilter_compact_jwt(token)
    h_raw = _b64url_decode_unpadded(h_seg, "JWT header", MAX_HEADER_BYTES)
    p_raw = _b64url_decode_unpadded(p_seg, "JWT payload", MAX_PAYLOAD_BYTES)
    header = _decode_json_object(h_raw, "JWT header")
    claims = _decode_json_object(p_raw, "JWT payload")
    iss = claims.get("iss")
    if iss and isinstance(iss, str):
        iss = iss.rstrip("/")  # normalize
    else:
        iss = None

    kid = header.get("kid")
    alg = header.get("alg")
    return JwtPreview(
        header=header,
        claims=claims,
        alg=alg if isinstance(alg, str) else None,
        kid=kid if isinstance(kid, str) else None,
        iss=iss,
    )


def select_jwk_set(jwks: dict[str, Any], kid: str | None) -> dict[str, Any]:
    """Narrow a key set to the key matching ``kid`` (all keys when kid is None)."""
    keys = [k for k in jwks.get("keys") or [] if isinstance(k, dict)]
    if not kid:
        return {"keys": keys}
    return {"keys": [k for k in keys if k.get("kid") == kid]}
