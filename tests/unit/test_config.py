"""Tests for configuration resolution."""

import logging

import pytest

from iot_registry_client.config import ClientConfig, ConfigResolver
from iot_registry_client.errors import ConfigError


class TestConfigResolver:
    """Test ConfigResolver priority ordering."""

    @pytest.mark.unit
    def test_explicit_value_wins(self, monkeypatch):
        monkeypatch.setenv("TEST_VALUE", "from-env")
        resolver = ConfigResolver(load_dotenv=False)

        assert resolver.resolve(value="explicit", env_var_name="TEST_VALUE") == "explicit"

    @pytest.mark.unit
    def test_env_var_beats_default(self, monkeypatch):
        monkeypatch.setenv("TEST_VALUE", "from-env")
        resolver = ConfigResolver(load_dotenv=False)

        assert resolver.resolve(env_var_name="TEST_VALUE", default="default") == "from-env"

    @pytest.mark.unit
    def test_default(self):
        resolver = ConfigResolver(load_dotenv=False)

        assert resolver.resolve(env_var_name="TEST_VALUE", default="default") == "default"
        assert resolver.resolve(env_var_name="TEST_VALUE") is None

    @pytest.mark.unit
    def test_required_missing(self):
        resolver = ConfigResolver(load_dotenv=False)

        with pytest.raises(ConfigError) as exc_info:
            resolver.resolve(env_var_name="TEST_VALUE", required=True)

        assert exc_info.value.env_var_name == "TEST_VALUE"
        assert "TEST_VALUE" in str(exc_info.value)

    @pytest.mark.unit
    def test_dotenv_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("TEST_DOTENV_VALUE=from-dotenv\n")
        monkeypatch.delenv("TEST_DOTENV_VALUE", raising=False)

        resolver = ConfigResolver(dotenv_path=str(env_file))

        assert resolver.resolve(env_var_name="TEST_DOTENV_VALUE") == "from-dotenv"

    @pytest.mark.unit
    def test_env_var_beats_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("TEST_VALUE=from-dotenv\n")
        monkeypatch.setenv("TEST_VALUE", "from-env")

        resolver = ConfigResolver(dotenv_path=str(env_file))

        assert resolver.resolve(env_var_name="TEST_VALUE") == "from-env"

    @pytest.mark.unit
    def test_secret_is_masked_in_logs(self, monkeypatch, caplog):
        monkeypatch.setenv("TEST_SECRET", "super-secret")
        resolver = ConfigResolver(load_dotenv=False)

        with caplog.at_level(logging.DEBUG, logger="iot_registry_client.config"):
            assert resolver.resolve(env_var_name="TEST_SECRET", secret=True) == "super-secret"

        assert "super-secret" not in caplog.text
        assert "***" in caplog.text
        assert "TEST_SECRET" in caplog.text

    @pytest.mark.unit
    @pytest.mark.parametrize(("raw", "expected"), [("1", True), ("TRUE", True), ("on", True), ("no", False), ("0", False)])
    def test_resolve_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("TEST_FLAG", raw)
        resolver = ConfigResolver(load_dotenv=False)

        assert resolver.resolve_bool(env_var_name="TEST_FLAG", default=False) is expected

    @pytest.mark.unit
    def test_invalid_values(self, monkeypatch):
        monkeypatch.setenv("TEST_INT", "three")
        monkeypatch.setenv("TEST_FLOAT", "fast")
        monkeypatch.setenv("TEST_FLAG", "maybe")
        resolver = ConfigResolver(load_dotenv=False)

        with pytest.raises(ConfigError) as exc_info:
            resolver.resolve_int(env_var_name="TEST_INT", default=1)
        assert exc_info.value.env_var_name == "TEST_INT"
        with pytest.raises(ConfigError):
            resolver.resolve_float(env_var_name="TEST_FLOAT", default=1.0)
        with pytest.raises(ConfigError):
            resolver.resolve_bool(env_var_name="TEST_FLAG", default=False)


class TestClientConfig:
    @pytest.mark.unit
    def test_defaults(self):
        config = ClientConfig(registry_url="https://api.example.com", access_token="t")

        assert config.token_refresh_margin == 30.0
        assert config.max_retries == 3
        assert config.backoff_factor == 0.5
        assert config.timeout == 30.0
        assert config.command_timeout is None
        assert not config.telemetry_enabled
        assert not config.uses_openid

    @pytest.mark.unit
    def test_repr_hides_secrets(self):
        config = ClientConfig(registry_url="https://api.example.com", client_secret="s3cr3t", access_token="t0k3n")

        assert "s3cr3t" not in repr(config)
        assert "t0k3n" not in repr(config)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "options",
        [{"max_retries": -1}, {"token_refresh_margin": -5}, {"timeout": 0}],
    )
    def test_validation(self, options):
        with pytest.raises(ConfigError):
            ClientConfig(registry_url="https://api.example.com", **options)

    @pytest.mark.unit
    def test_from_env_openid(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", "https://api.example.com")
        monkeypatch.setenv("REGISTRY_ISSUER_URL", "https://sso.example.com/realms/iot")
        monkeypatch.setenv("REGISTRY_CLIENT_ID", "svc")
        monkeypatch.setenv("REGISTRY_CLIENT_SECRET", "secret")
        monkeypatch.setenv("REGISTRY_SCOPES", "openid, registry  commands")
        monkeypatch.setenv("REGISTRY_MAX_RETRIES", "5")
        monkeypatch.setenv("REGISTRY_TOKEN_REFRESH_MARGIN", "60")
        monkeypatch.setenv("REGISTRY_COMMAND_TIMEOUT", "2.5")
        monkeypatch.setenv("REGISTRY_TELEMETRY_ENABLED", "true")

        config = ClientConfig.from_env(load_dotenv=False)

        assert config.registry_url == "https://api.example.com"
        assert config.uses_openid
        assert config.client_id == "svc"
        assert config.client_secret == "secret"
        assert config.scopes == ("openid", "registry", "commands")
        assert config.max_retries == 5
        assert config.token_refresh_margin == 60.0
        assert config.command_timeout == 2.5
        assert config.telemetry_enabled

    @pytest.mark.unit
    def test_from_env_static_token(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", "https://api.example.com")
        monkeypatch.setenv("REGISTRY_ACCESS_TOKEN", "api-token")

        config = ClientConfig.from_env(load_dotenv=False)

        assert config.access_token == "api-token"
        assert not config.uses_openid
        assert config.scopes == ()
        assert config.username is None

    @pytest.mark.unit
    def test_from_env_user_token(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", "https://api.example.com")
        monkeypatch.setenv("REGISTRY_ACCESS_TOKEN", "api-key")
        monkeypatch.setenv("REGISTRY_USERNAME", "alice")

        config = ClientConfig.from_env(load_dotenv=False)

        assert config.username == "alice"
        assert config.access_token == "api-key"

    @pytest.mark.unit
    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", "https://env.example.com")
        monkeypatch.setenv("REGISTRY_MAX_RETRIES", "5")

        config = ClientConfig.from_env(
            load_dotenv=False, registry_url="https://api.example.com", access_token="t", max_retries=0
        )

        assert config.registry_url == "https://api.example.com"
        assert config.max_retries == 0

    @pytest.mark.unit
    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("TEST_URL", "https://api.example.com")
        monkeypatch.setenv("TEST_ACCESS_TOKEN", "t")

        config = ClientConfig.from_env(prefix="TEST_", load_dotenv=False)

        assert config.access_token == "t"

    @pytest.mark.unit
    def test_from_dotenv(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("TEST_URL=https://dotenv.example.com\nTEST_ACCESS_TOKEN=t\n")

        config = ClientConfig.from_env(prefix="TEST_", dotenv_path=str(env_file))

        assert config.registry_url == "https://dotenv.example.com"

    @pytest.mark.unit
    def test_missing_url(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_ACCESS_TOKEN", "t")

        with pytest.raises(ConfigError) as exc_info:
            ClientConfig.from_env(load_dotenv=False)

        assert exc_info.value.env_var_name == "REGISTRY_URL"

    @pytest.mark.unit
    def test_missing_credentials(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", "https://api.example.com")

        with pytest.raises(ConfigError) as exc_info:
            ClientConfig.from_env(load_dotenv=False)

        assert exc_info.value.env_var_name == "REGISTRY_ISSUER_URL"

    @pytest.mark.unit
    def test_missing_client_id(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", "https://api.example.com")
        monkeypatch.setenv("REGISTRY_ISSUER_URL", "https://sso.example.com")

        with pytest.raises(ConfigError) as exc_info:
            ClientConfig.from_env(load_dotenv=False)

        assert exc_info.value.env_var_name == "REGISTRY_CLIENT_ID"

    @pytest.mark.unit
    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", "https://api.example.com")
        monkeypatch.setenv("REGISTRY_ACCESS_TOKEN", "t")
        monkeypatch.setenv("REGISTRY_TIMEOUT", "forever")

        with pytest.raises(ConfigError) as exc_info:
            ClientConfig.from_env(load_dotenv=False)

        assert exc_info.value.env_var_name == "REGISTRY_TIMEOUT"

    @pytest.mark.unit
    def test_unknown_override(self):
        with pytest.raises(ConfigError, match="retry_count"):
            ClientConfig.from_env(load_dotenv=False, registry_url="https://api.example.com", retry_count=2)
