"""Configuration loading, environment overrides and context management."""

import base64
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from src.adspace.runtime.config.config_data import (
    AppConfig,
    AuthConfig,
    ClerkConfig,
    ConfigData,
    frontend_api_from_publishable_key,
)
from src.adspace.runtime.config.config_template import load_templated_yaml, substitute_env_vars
from src.adspace.runtime.config.settings import EnvironmentVariables
from src.adspace.runtime.context import get_config, with_context


def _publishable_key(host: str, env: str = "test") -> str:
    encoded = base64.b64encode(f"{host}$".encode()).decode().rstrip("=")
    return f"pk_{env}_{encoded}"


class TestPublishableKey:
    def test_decodes_frontend_api(self):
        key = _publishable_key("clean-cat-42.clerk.accounts.dev")
        assert frontend_api_from_publishable_key(key) == "clean-cat-42.clerk.accounts.dev"

    @pytest.mark.parametrize("key", ["", "pk_test_", "sk_test_abc", "pk_test_!!!", "pk_live_" + base64.b64encode(b"no-dollar").decode()])
    def test_invalid_keys(self, key):
        assert frontend_api_from_publishable_key(key) is None

    def test_issuer_and_jwks_uri_derived_from_key(self):
        clerk = ClerkConfig(publishable_key=_publishable_key("clerk.adspace.io", "live"))

        assert clerk.expected_issuer == "https://clerk.adspace.io"
        assert clerk.jwks_uri == "https://clerk.adspace.io/.well-known/jwks.json"

    def test_explicit_issuer_wins(self):
        clerk = ClerkConfig(
            issuer="https://auth.adspace.io/",
            publishable_key=_publishable_key("clerk.adspace.io"),
        )

        assert clerk.expected_issuer == "https://auth.adspace.io"

    def test_no_issuer_without_key(self):
        clerk = ClerkConfig()
        assert clerk.expected_issuer is None
        assert clerk.jwks_uri is None


class TestDefaults:
    def test_unverified_fallback_off_by_default(self):
        assert ConfigData().auth.allow_unverified_fallback is False

    def test_error_details_hidden_only_in_production(self):
        assert AppConfig(environment="development").expose_error_details
        assert AppConfig(environment="test").expose_error_details
        assert not AppConfig(environment="production").expose_error_details


class TestSubstituteEnvVars:
    def test_default_used_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert substitute_env_vars("x: ${MISSING_VAR:-fallback}") == "x: fallback"

    def test_value_from_environment(self):
        with patch.dict(os.environ, {"CLERK_SECRET_KEY": "sk_live_1"}):
            assert substitute_env_vars("${CLERK_SECRET_KEY:-}") == "sk_live_1"

    def test_required_variable_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="REQUIRED_VAR"):
                substitute_env_vars("${REQUIRED_VAR}")


class TestLoadTemplatedYaml:
    def test_loads_config_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "config:\n"
            "  app:\n"
            "    environment: test\n"
            "  clerk:\n"
            "    secret_key: ${TEST_CLERK_SECRET:-}\n"
            "    issuer: https://clerk.adspace.test\n"
            "  auth:\n"
            "    placeholder_email_domain: users.adspace.test\n"
        )

        with patch.dict(os.environ, {"TEST_CLERK_SECRET": "sk_test_abc"}):
            config = load_templated_yaml(config_file)

        assert config.app.environment == "test"
        assert config.clerk.secret_key == "sk_test_abc"
        assert config.clerk.expected_issuer == "https://clerk.adspace.test"
        assert config.auth.placeholder_email_domain == "users.adspace.test"

    def test_shipped_config_file(self):
        config_file = Path(__file__).resolve().parents[3] / "config.yaml"

        config = load_templated_yaml(config_file)

        assert config.rate_limiter.requests == 100
        assert config.rate_limiter.window_ms == 15 * 60 * 1000
        assert config.auth.allow_unverified_fallback is False

    def test_empty_substitution_becomes_none(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("config:\n  clerk:\n    secret_key: ${UNSET_SECRET_FOR_TEST:-}\n")

        config = load_templated_yaml(config_file)

        assert config.clerk.secret_key is None

    def test_invalid_values_raise(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("config:\n  app:\n    environment: staging\n")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_templated_yaml(config_file)


class TestEnvironmentVariables:
    def test_apply_overrides_only_set_values(self):
        env = EnvironmentVariables(
            _env_file=None,
            environment="production",
            clerk_secret_key="sk_live_xyz",
        )
        base = ConfigData(clerk=ClerkConfig(publishable_key="pk_test_keep"))

        updated = env.apply_to(base)

        assert updated.app.environment == "production"
        assert updated.clerk.secret_key == "sk_live_xyz"
        assert updated.clerk.publishable_key == "pk_test_keep"
        # original untouched
        assert base.clerk.secret_key is None

    def test_webhook_secret_and_redis_url(self):
        env = EnvironmentVariables(
            _env_file=None,
            clerk_webhook_secret="whsec_abc",
            redis_url="redis://cache:6379/0",
        )

        updated = env.apply_to(ConfigData())

        assert updated.clerk.webhook_secret == "whsec_abc"
        assert updated.redis.url == "redis://cache:6379/0"


class TestWithContext:
    def test_override_is_scoped(self):
        before = get_config().auth.placeholder_email_domain
        override = ConfigData(auth=AuthConfig(placeholder_email_domain="scoped.test"))

        with with_context(config_override=override):
            assert get_config().auth.placeholder_email_domain == "scoped.test"

        assert get_config().auth.placeholder_email_domain == before

    def test_unset_fields_are_inherited(self):
        outer = ConfigData(clerk=ClerkConfig(secret_key="sk_outer"))
        inner = ConfigData(auth=AuthConfig(allow_unverified_fallback=True))

        with with_context(config_override=outer), with_context(config_override=inner):
            assert get_config().clerk.secret_key == "sk_outer"
            assert get_config().auth.allow_unverified_fallback is True

    def test_rejects_non_config(self):
        with pytest.raises(ValueError):
            with with_context(config_override={"app": {}}):
                pass
