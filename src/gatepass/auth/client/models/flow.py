"""Authorization flow models for the OAuth 2.0 login flow.

Contains the authorization request, the callback result handed from the
listener or manual capture to the orchestrator, and the flow states.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlencode

from gatepass.auth.client.models.security import PKCEParameters


class FlowState(str, Enum):
    """States of a single login attempt."""

    INIT = "init"
    AWAITING_CALLBACK = "awaiting_callback"
    AUTHENTICATING = "authenticating"
    MANUAL_FALLBACK = "manual_fallback"
    VALIDATING = "validating"
    EXCHANGING = "exchanging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the authorization code flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    scopes: tuple[str, ...]
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }

        separator = "&" if "?" in self.authorization_endpoint else "?"
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"


@dataclass(frozen=True)
class CallbackResult:
    """Authorization code and state received after user consent.

    Produced exactly once per attempt, by either the callback listener or
    manual capture.
    """

    code: str = field(repr=False)
    state: str


def normalize_scopes(scopes: str | Sequence[str]) -> tuple[str, ...]:
    """Split a space-separated scope string, preserving order."""
    if isinstance(scopes, str):
        return tuple(scopes.split())
    return tuple(s for s in scopes if s)


def build_authorization_url(
    authorization_endpoint: str,
    client_id: str,
    redirect_uri: str,
    scopes: str | Sequence[str],
    pkce: PKCEParameters,
) -> str:
    """Build the provider authorization URL for one login attempt."""
    request = AuthorizationRequest(
        authorization_endpoint=authorization_endpoint,
        client_id=client_id,
        redirect_uri=redirect_uri,
        scopes=normalize_scopes(scopes),
        state=pkce.state,
        code_challenge=pkce.code_challenge,
        code_challenge_method=pkce.code_challenge_method,
    )
    return request.build_authorization_url()
