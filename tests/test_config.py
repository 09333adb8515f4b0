"""Tests for configuration resolution."""

import base64
import json

import pytest

from bitbucket_mcp_server.config import (
    CLOUD_API_URL,
    AuthScheme,
    ConfigurationError,
    Settings,
    load_config,
    resolve_base_url,
)

CREDENTIALS = {
    "ATLASSIAN_USER_EMAIL": "user@example.com",
    "ATLASSIAN_API_TOKEN": "apitoken",
}


def write_config_file(directory, name="mcp.config.json", **environments):
    values = {**CREDENTIALS, "ATLASSIAN_SITE_URL": "bitbucket", **environments}
    (directory / name).write_text(json.dumps({"bitbucket": {"environments": values}}))


class TestResolveBaseUrl:
    def test_bitbucket_token_maps_to_cloud(self):
        """Test the literal 'bitbucket' selects the Cloud API."""
        assert resolve_base_url("bitbucket") == "https://api.bitbucket.org/2.0"

    def test_missing_value_maps_to_cloud(self):
        """Test an unset site URL defaults to the Cloud API."""
        assert resolve_base_url(None) == CLOUD_API_URL
        assert resolve_base_url("") == CLOUD_API_URL

    def test_other_value_used_verbatim(self):
        """Test any other URL is used unchanged."""
        url = "https://bitbucket.example.com/rest/api/1.0"
        assert resolve_base_url(url) == url


class TestSettings:
    def test_cloud_uses_basic_auth(self):
        """Test the Cloud host derives basic auth."""
        settings = Settings(base_url=CLOUD_API_URL, user_email="u", api_token="t")
        assert settings.auth_scheme == AuthScheme.BASIC
        assert settings.is_cloud

    def test_server_uses_bearer_auth(self):
        """Test a non-Cloud host derives bearer auth."""
        settings = Settings(base_url="https://git.example.com/rest/api/1.0", user_email="u", api_token="t")
        assert settings.auth_scheme == AuthScheme.BEARER
        assert not settings.is_cloud

    def test_explicit_auth_scheme_wins(self):
        """Test an explicit scheme overrides the derived one."""
        settings = Settings(
            base_url="https://git.example.com/rest/api/1.0",
            user_email="u",
            api_token="t",
            auth_scheme=AuthScheme.BASIC,
        )
        assert settings.auth_scheme == AuthScheme.BASIC

    def test_basic_auth_header(self):
        """Test the basic header encodes email:token."""
        settings = Settings(base_url=CLOUD_API_URL, user_email="u", api_token="t")
        header = settings.auth_header()
        assert header.startswith("Basic ")
        assert base64.b64decode(header.split(" ", 1)[1]) == b"u:t"

    def test_bearer_auth_header(self):
        """Test the bearer header carries only the token."""
        settings = Settings(base_url="https://git.example.com", user_email="u", api_token="t")
        assert settings.auth_header() == "Bearer t"

    def test_settings_are_immutable(self):
        """Test settings cannot be modified after creation."""
        settings = Settings(base_url=CLOUD_API_URL, user_email="u", api_token="t")
        with pytest.raises(Exception):
            settings.base_url = "https://other.example.com"

    def test_token_not_in_repr(self):
        """Test the API token is masked."""
        settings = Settings(base_url=CLOUD_API_URL, user_email="u", api_token="supersecret")
        assert "supersecret" not in repr(settings)


class TestLoadConfig:
    def test_loads_from_env(self, tmp_path):
        """Test loading credentials straight from the environment."""
        settings = load_config(tmp_path, environ=dict(CREDENTIALS))
        assert settings.user_email == "user@example.com"
        assert settings.api_token.get_secret_value() == "apitoken"
        assert settings.base_url == CLOUD_API_URL
        assert settings.default_destination_branch == "main"

    def test_site_url_bitbucket(self, tmp_path):
        """Test ATLASSIAN_SITE_URL=bitbucket resolves to the Cloud API with basic auth."""
        settings = load_config(tmp_path, environ={**CREDENTIALS, "ATLASSIAN_SITE_URL": "bitbucket"})
        assert settings.base_url == "https://api.bitbucket.org/2.0"
        assert settings.auth_scheme == AuthScheme.BASIC

    def test_site_url_server(self, tmp_path):
        """Test any other ATLASSIAN_SITE_URL is used verbatim with bearer auth."""
        url = "https://bitbucket.example.com/rest/api/1.0"
        settings = load_config(tmp_path, environ={**CREDENTIALS, "ATLASSIAN_SITE_URL": url})
        assert settings.base_url == url
        assert settings.auth_scheme == AuthScheme.BEARER

    def test_auth_type_override(self, tmp_path):
        """Test BITBUCKET_AUTH_TYPE overrides the derived scheme."""
        environ = {
            **CREDENTIALS,
            "ATLASSIAN_SITE_URL": "https://bitbucket.example.com/rest/api/1.0",
            "BITBUCKET_AUTH_TYPE": "basic",
        }
        assert load_config(tmp_path, environ=environ).auth_scheme == AuthScheme.BASIC

    def test_invalid_auth_type(self, tmp_path):
        """Test an unknown auth type is a configuration error."""
        with pytest.raises(ConfigurationError):
            load_config(tmp_path, environ={**CREDENTIALS, "BITBUCKET_AUTH_TYPE": "oauth"})

    def test_log_level_is_normalized(self, tmp_path):
        """Test LOG_LEVEL is case-insensitive."""
        settings = load_config(tmp_path, environ={**CREDENTIALS, "LOG_LEVEL": "debug"})
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self, tmp_path):
        """Test an unknown LOG_LEVEL is a configuration error naming the value."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path, environ={**CREDENTIALS, "LOG_LEVEL": "verbose"})
        assert "verbose" in str(exc_info.value)

    def test_default_destination_branch_from_env(self, tmp_path):
        """Test BITBUCKET_DEFAULT_DEST_BRANCH is honoured."""
        settings = load_config(tmp_path, environ={**CREDENTIALS, "BITBUCKET_DEFAULT_DEST_BRANCH": "develop"})
        assert settings.default_destination_branch == "develop"

    def test_missing_credentials(self, tmp_path):
        """Test no credential source raises a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path, environ={})
        assert "Missing credentials" in str(exc_info.value)

    def test_loads_from_config_file(self, tmp_path):
        """Test loading from mcp.config.json."""
        write_config_file(tmp_path)
        settings = load_config(tmp_path, environ={})
        assert settings.user_email == "user@example.com"
        assert settings.base_url == CLOUD_API_URL

    @pytest.mark.parametrize("name", ["mcp.config.json", ".mcp.config.json", ".bitbucket.mcp.json"])
    def test_recognized_config_file_names(self, tmp_path, name):
        """Test all three config file names are recognized."""
        write_config_file(tmp_path, name=name)
        assert load_config(tmp_path, environ={}).user_email == "user@example.com"

    def test_config_file_branch_beats_env(self, tmp_path):
        """Test the config file default branch takes precedence over the env var."""
        write_config_file(tmp_path, BITBUCKET_DEFAULT_DEST_BRANCH="release")
        settings = load_config(tmp_path, environ={"BITBUCKET_DEFAULT_DEST_BRANCH": "develop"})
        assert settings.default_destination_branch == "release"

    def test_config_file_falls_back_to_env_branch(self, tmp_path):
        """Test the env var default branch applies when the file has none."""
        write_config_file(tmp_path)
        settings = load_config(tmp_path, environ={"BITBUCKET_DEFAULT_DEST_BRANCH": "develop"})
        assert settings.default_destination_branch == "develop"

    def test_config_file_beats_plain_env(self, tmp_path):
        """Test the config file wins over env vars when there is no .env file."""
        write_config_file(tmp_path, ATLASSIAN_USER_EMAIL="file@example.com")
        settings = load_config(tmp_path, environ={**CREDENTIALS, "ATLASSIAN_USER_EMAIL": "env@example.com"})
        assert settings.user_email == "file@example.com"

    def test_dotenv_file_beats_config_file(self, tmp_path):
        """Test a .env file plus env credentials takes precedence over the config file."""
        write_config_file(tmp_path, ATLASSIAN_USER_EMAIL="file@example.com")
        (tmp_path / ".env").write_text("ATLASSIAN_SITE_URL=bitbucket\n")
        settings = load_config(tmp_path, environ={**CREDENTIALS, "ATLASSIAN_USER_EMAIL": "env@example.com"})
        assert settings.user_email == "env@example.com"

    def test_dotenv_values_are_read(self, tmp_path):
        """Test credentials defined only in .env are picked up."""
        (tmp_path / ".env").write_text(
            "ATLASSIAN_USER_EMAIL=dotenv@example.com\n"
            "ATLASSIAN_API_TOKEN=dotenv-token\n"
            "ATLASSIAN_SITE_URL=https://bitbucket.example.com/rest/api/1.0\n"
        )
        settings = load_config(tmp_path, environ={})
        assert settings.user_email == "dotenv@example.com"
        assert settings.base_url == "https://bitbucket.example.com/rest/api/1.0"
        assert settings.auth_scheme == AuthScheme.BEARER

    def test_invalid_config_file_is_skipped(self, tmp_path):
        """Test a malformed config file falls through to env vars."""
        (tmp_path / "mcp.config.json").write_text("{not json")
        settings = load_config(tmp_path, environ=dict(CREDENTIALS))
        assert settings.user_email == "user@example.com"

    def test_config_file_without_credentials_is_skipped(self, tmp_path):
        """Test a config file missing credentials does not satisfy resolution."""
        (tmp_path / "mcp.config.json").write_text(json.dumps({"bitbucket": {"environments": {}}}))
        with pytest.raises(ConfigurationError):
            load_config(tmp_path, environ={})

    def test_environ_not_mutated(self, tmp_path):
        """Test loading never writes into the supplied environment."""
        (tmp_path / ".env").write_text("ATLASSIAN_USER_EMAIL=a@b.c\nATLASSIAN_API_TOKEN=t\n")
        environ: dict[str, str] = {}
        load_config(tmp_path, environ=environ)
        assert environ == {}
