"""Environment-backed settings for the login flow.

All values come from ``GATEPASS_*`` environment variables. The command-line
entry point also loads a ``.env`` file before reading them.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from gatepass.auth.client.models.errors import ConfigMissingError, ConfigurationError

ENV_PREFIX = "GATEPASS_"

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
DEFAULT_SCOPES = "read:user user:email"
DEFAULT_LISTEN_ADDR = "0.0.0.0:8080"
DEFAULT_CALLBACK_TIMEOUT = 60.0


def _flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(ENV_PREFIX + name, "") == "1"


def auth_bypass_enabled(environ: Mapping[str, str] | None = None) -> bool:
    """True only when ``GATEPASS_AUTH_BYPASS`` is explicitly ``1``."""
    return _flag(os.environ if environ is None else environ, "AUTH_BYPASS")


class AuthSettings(BaseModel):
    """Settings for one interactive login."""

    client_id: str
    redirect_uri: str
    scopes: str = DEFAULT_SCOPES
    client_secret: SecretStr | None = None
    open_browser: bool = True
    listen_addr: str = DEFAULT_LISTEN_ADDR
    callback_timeout: float = Field(default=DEFAULT_CALLBACK_TIMEOUT, gt=0)
    authorize_url: str = GITHUB_AUTHORIZE_URL
    token_url: str = GITHUB_TOKEN_URL

    @field_validator("client_id", "redirect_uri")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("authorize_url", "token_url")
    @classmethod
    def validate_https_endpoint(cls, v: str) -> str:
        """Provider endpoints are only reachable over TLS."""
        if not v.startswith("https://"):
            raise ValueError(f"Endpoint must use HTTPS: {v}")
        return v

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v: str) -> str:
        return " ".join(v.split())

    @property
    def client_secret_value(self) -> str | None:
        if self.client_secret is None:
            return None
        return self.client_secret.get_secret_value()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AuthSettings:
        """Build settings from ``GATEPASS_*`` variables.

        Raises:
            ConfigMissingError: If the client id or redirect URL is absent
            ConfigurationError: If a value is present but invalid
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value if value else None

        client_id = get("CLIENT_ID")
        if client_id is None:
            raise ConfigMissingError(
                f"{ENV_PREFIX}CLIENT_ID is required for OAuth login"
            )
        redirect_uri = get("REDIRECT_URL")
        if redirect_uri is None:
            raise ConfigMissingError(
                f"{ENV_PREFIX}REDIRECT_URL must be set to the registered callback URL"
            )

        values: dict[str, object] = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "open_browser": not _flag(env, "NO_BROWSER"),
        }
        optional = {
            "scopes": "SCOPES",
            "client_secret": "CLIENT_SECRET",
            "listen_addr": "LISTEN_ADDR",
            "callback_timeout": "CALLBACK_TIMEOUT",
            "authorize_url": "AUTHORIZE_URL",
            "token_url": "TOKEN_URL",
        }
        for field_name, env_name in optional.items():
            value = get(env_name)
            if value is not None:
                values[field_name] = value

        try:
            return cls(**values)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid login settings: {errors}") from e
