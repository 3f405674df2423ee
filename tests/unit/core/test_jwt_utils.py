import pytest

from src.adspace.core.errors import InvalidCredential
from src.adspace.core.services.jwt.jwt_utils import (
    MAX_JWT_CHARS,
    preview_jwt,
    select_jwk_set,
)
from tests.utils import unsigned_token


class TestPreviewJwt:
    def test_decodes_header_and_claims(self):
        token = unsigned_token(
            {"alg": "RS256", "kid": "k1"},
            {"sub": "ext_123", "iss": "https://clerk.adspace.test/"},
        )

        preview = preview_jwt(token)

        assert preview.alg == "RS256"
        assert preview.kid == "k1"
        assert preview.sub == "ext_123"
        # trailing slash is normalized away
        assert preview.iss == "https://clerk.adspace.test"

    def test_non_string_fields_are_ignored(self):
        token = unsigned_token({"alg": 5, "kid": ["k"]}, {"sub": 42, "iss": 7})

        preview = preview_jwt(token)

        assert preview.alg is None
        assert preview.kid is None
        assert preview.sub is None
        assert preview.iss is None

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "not-a-jwt",
            "a.b",
            "a.b.c.d",
            ".payload.sig",
            "header..sig",
            "header.payload.",
            "héader.payload.sig",
            "abc=.def.ghi",
        ],
    )
    def test_malformed_structure_raises_invalid_credential(self, token):
        with pytest.raises(InvalidCredential) as exc_info:
            preview_jwt(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid or malformed token"

    def test_oversized_token_rejected(self):
        with pytest.raises(InvalidCredential):
            preview_jwt("a" * (MAX_JWT_CHARS + 1))

    def test_payload_must_be_json_object(self):
        token = unsigned_token({"alg": "RS256"}, {"sub": "x"})
        header, _, sig = token.split(".")
        # base64url("[1,2]")
        with pytest.raises(InvalidCredential) as exc_info:
            preview_jwt(f"{header}.WzEsMl0.{sig}")
        assert "JSON object" in exc_info.value.error

    def test_payload_must_be_json(self):
        token = unsigned_token({"alg": "RS256"}, {"sub": "x"})
        header, _, sig = token.split(".")
        # base64url("not json")
        with pytest.raises(InvalidCredential) as exc_info:
            preview_jwt(f"{header}.bm90IGpzb24.{sig}")
        assert "Invalid JSON" in exc_info.value.error


class TestSelectJwkSet:
    def test_filters_by_kid(self):
        jwks = {"keys": [{"kid": "a"}, {"kid": "b"}]}
        assert select_jwk_set(jwks, "b") == {"keys": [{"kid": "b"}]}

    def test_unknown_kid_gives_empty_set(self):
        assert select_jwk_set({"keys": [{"kid": "a"}]}, "z") == {"keys": []}

    def test_no_kid_returns_whole_set(self):
        jwks = {"keys": [{"kid": "a"}]}
        assert select_jwk_set(jwks, None) == jwks

    @pytest.mark.parametrize("kid", ["a", None])
    def test_non_object_entries_are_skipped(self, kid):
        jwks = {"keys": ["junk", 42, None, {"kid": "a"}]}
        assert select_jwk_set(jwks, kid) == {"keys": [{"kid": "a"}]}

    def test_missing_keys_member(self):
        assert select_jwk_set({}, "a") == {"keys": []}
