"""Exception hierarchy for the interactive OAuth 2.0 login flow.

Every failure that can end a login attempt has its own exception type and an
``ErrorKind`` tag, so callers can branch on the reason without parsing
messages. ``AuthOutcome`` wraps the end result of one attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Typed reason for a failed login attempt."""

    CONFIG_MISSING = "config_missing"
    CONFIG_INVALID = "config_invalid"
    LISTENER_BIND_FAILED = "listener_bind_failed"
    STATE_MISMATCH = "state_mismatch"
    NO_INTERACTIVE_INPUT = "no_interactive_input"
    NO_CODE_PROVIDED = "no_code_provided"
    EXCHANGE_TRANSPORT_FAILED = "exchange_transport_failed"
    EXCHANGE_REJECTED = "exchange_rejected"
    NO_ACCESS_TOKEN = "no_access_token"
    PKCE_FAILED = "pkce_failed"


class OAuth2Error(Exception):
    """Base exception for all login flow errors."""

    kind: ErrorKind = ErrorKind.CONFIG_INVALID


class ConfigurationError(OAuth2Error):
    """Raised when a setting is invalid."""

    kind = ErrorKind.CONFIG_INVALID


class ConfigMissingError(ConfigurationError):
    """Raised when a required setting is absent from the environment."""

    kind = ErrorKind.CONFIG_MISSING


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation or validation fails."""

    kind = ErrorKind.PKCE_FAILED


class ListenerBindError(OAuth2Error):
    """Raised when the local callback listener cannot bind its address.

    This is fatal: the flow does not silently fall back to manual capture.
    """

    kind = ErrorKind.LISTENER_BIND_FAILED


class StateValidationError(OAuth2Error):
    """Raised when the returned state does not match the generated one.

    This indicates either a stale browser tab or a CSRF attempt against the
    callback endpoint.
    """

    kind = ErrorKind.STATE_MISMATCH


class NoInteractiveInputError(OAuth2Error):
    """Raised when manual capture is needed but no terminal is attached."""

    kind = ErrorKind.NO_INTERACTIVE_INPUT


class NoCodeProvidedError(OAuth2Error):
    """Raised when manual capture produced nothing usable."""

    kind = ErrorKind.NO_CODE_PROVIDED


class TokenError(OAuth2Error):
    """Raised when the code-for-token exchange fails."""

    kind = ErrorKind.EXCHANGE_TRANSPORT_FAILED


class TokenExchangeTransportError(TokenError):
    """Raised when the token endpoint could not be reached."""

    kind = ErrorKind.EXCHANGE_TRANSPORT_FAILED


class TokenExchangeRejectedError(TokenError):
    """Raised when the token endpoint answers with a non-success status."""

    kind = ErrorKind.EXCHANGE_REJECTED

    def __init__(self, message: str, status_code: int, body: str):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MissingAccessTokenError(TokenError):
    """Raised when a token response carries no access_token."""

    kind = ErrorKind.NO_ACCESS_TOKEN


@dataclass(frozen=True)
class AuthOutcome:
    """Result of one login attempt.

    The access token is observed but never kept: a successful outcome only
    records that one was received.
    """

    succeeded: bool
    error: OAuth2Error | None = None
    bypassed: bool = False

    @classmethod
    def success(cls) -> AuthOutcome:
        return cls(succeeded=True)

    @classmethod
    def bypass(cls) -> AuthOutcome:
        return cls(succeeded=True, bypassed=True)

    @classmethod
    def failure(cls, error: OAuth2Error) -> AuthOutcome:
        return cls(succeeded=False, error=error)

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None
