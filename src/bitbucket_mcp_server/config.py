"""Configuration management for Bitbucket MCP Server."""

import base64
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

logger = logging.getLogger(__name__)

CLOUD_API_URL = "https://api.bitbucket.org/2.0"
CLOUD_HOST_MARKER = "api.bitbucket.org"
CLOUD_SITE_TOKEN = "bitbucket"

CONFIG_FILE_NAMES = ("mcp.config.json", ".mcp.config.json", ".bitbucket.mcp.json")

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigurationError(Exception):
    """Raised when no usable credential source is found."""
    pass


class AuthScheme(str, Enum):
    BASIC = "basic"
    BEARER = "bearer"


class Settings(BaseModel):
    """Resolved server settings. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    base_url: str = CLOUD_API_URL
    user_email: str
    api_token: SecretStr
    auth_scheme: AuthScheme = AuthScheme.BASIC
    default_destination_branch: str = "main"
    working_dir: Path = Field(default_factory=Path.cwd)
    log_level: str = "INFO"

    @model_validator(mode="before")
    @classmethod
    def _derive_auth_scheme(cls, data: Any) -> Any:
        # Basic for the Cloud host, bearer otherwise, unless set explicitly
        if isinstance(data, dict) and not data.get("auth_scheme"):
            base_url = data.get("base_url") or CLOUD_API_URL
            scheme = AuthScheme.BASIC if CLOUD_HOST_MARKER in base_url else AuthScheme.BEARER
            data = {**data, "auth_scheme": scheme}
        return data

    @property
    def is_cloud(self) -> bool:
        return CLOUD_HOST_MARKER in self.base_url

    def auth_header(self) -> str:
        """Build the Authorization header value for the configured scheme."""
        token = self.api_token.get_secret_value()
        if self.auth_scheme == AuthScheme.BEARER:
            return f"Bearer {token}"
        raw = f"{self.user_email}:{token}".encode()
        return f"Basic {base64.b64encode(raw).decode()}"


def resolve_base_url(site_url: str | None) -> str:
    """
    Map the ATLASSIAN_SITE_URL value onto an API base URL.

    The literal token "bitbucket" and an empty value both select Bitbucket Cloud;
    anything else is used verbatim as a Bitbucket Server REST base URL.
    """
    if not site_url or site_url == CLOUD_SITE_TOKEN:
        return CLOUD_API_URL
    return site_url


def _parse_auth_scheme(value: str | None) -> AuthScheme | None:
    if not value:
        return None
    try:
        return AuthScheme(value.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"Invalid BITBUCKET_AUTH_TYPE '{value}'. Expected 'basic' or 'bearer'."
        ) from None


def _parse_log_level(value: str | None) -> str:
    if not value:
        return "INFO"
    level = value.strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(f"Invalid LOG_LEVEL '{value}'. Expected one of: {', '.join(LOG_LEVELS)}.")
    return level


def _settings_from_env(env: Mapping[str, str], working_dir: Path) -> Settings:
    return Settings(
        base_url=resolve_base_url(env.get("ATLASSIAN_SITE_URL")),
        user_email=env["ATLASSIAN_USER_EMAIL"],
        api_token=env["ATLASSIAN_API_TOKEN"],
        auth_scheme=_parse_auth_scheme(env.get("BITBUCKET_AUTH_TYPE")),
        default_destination_branch=env.get("BITBUCKET_DEFAULT_DEST_BRANCH") or "main",
        working_dir=working_dir,
        log_level=_parse_log_level(env.get("LOG_LEVEL")),
    )


def _settings_from_file(path: Path, env: Mapping[str, str], working_dir: Path) -> Settings | None:
    """Build settings from a JSON config file, or None if it holds no usable block."""
    try:
        raw = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Skipping unreadable config file %s: %s", path, e)
        return None

    bitbucket = raw.get("bitbucket") if isinstance(raw, dict) else None
    environments = bitbucket.get("environments") if isinstance(bitbucket, dict) else None
    if not isinstance(environments, dict):
        return None

    email = environments.get("ATLASSIAN_USER_EMAIL")
    token = environments.get("ATLASSIAN_API_TOKEN")
    if not email or not token:
        logger.warning("Config file %s is missing ATLASSIAN_USER_EMAIL or ATLASSIAN_API_TOKEN", path)
        return None

    destination = (
        environments.get("BITBUCKET_DEFAULT_DEST_BRANCH")
        or bitbucket.get("defaultDestinationBranch")
        or env.get("BITBUCKET_DEFAULT_DEST_BRANCH")
        or "main"
    )
    return Settings(
        base_url=resolve_base_url(environments.get("ATLASSIAN_SITE_URL")),
        user_email=email,
        api_token=token,
        auth_scheme=_parse_auth_scheme(
            environments.get("BITBUCKET_AUTH_TYPE") or env.get("BITBUCKET_AUTH_TYPE")
        ),
        default_destination_branch=destination,
        working_dir=working_dir,
        log_level=_parse_log_level(env.get("LOG_LEVEL")),
    )


def load_config(working_dir: Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """
    Resolve settings for the server.

    Resolution order (first match wins):
        1. A .env file in working_dir plus user email and API token in the environment
        2. A JSON config file (mcp.config.json, .mcp.config.json, .bitbucket.mcp.json)
           with a bitbucket.environments block
        3. User email and API token set directly in the environment

    Args:
        working_dir: Directory searched for .env and JSON config files. Defaults to cwd.
        environ: Environment mapping. Defaults to os.environ; never mutated.

    Raises:
        ConfigurationError if no credential source is found
    """
    working_dir = Path(working_dir) if working_dir is not None else Path.cwd()
    process_env = dict(os.environ if environ is None else environ)

    env_file = working_dir / ".env"
    if env_file.is_file():
        # Process values win over .env values
        file_values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
        merged = {**file_values, **process_env}
        if merged.get("ATLASSIAN_USER_EMAIL") and merged.get("ATLASSIAN_API_TOKEN"):
            logger.debug("Loaded configuration from environment and %s", env_file)
            return _settings_from_env(merged, working_dir)
    else:
        merged = process_env

    for name in CONFIG_FILE_NAMES:
        path = working_dir / name
        if path.is_file():
            settings = _settings_from_file(path, merged, working_dir)
            if settings is not None:
                logger.debug("Loaded configuration from %s", path)
                return settings

    if process_env.get("ATLASSIAN_USER_EMAIL") and process_env.get("ATLASSIAN_API_TOKEN"):
        logger.debug("Loaded configuration from environment")
        return _settings_from_env(process_env, working_dir)

    raise ConfigurationError(
        "Missing credentials. Provide env vars ATLASSIAN_USER_EMAIL and ATLASSIAN_API_TOKEN "
        "or mcp.config.json with bitbucket.environments."
    )
