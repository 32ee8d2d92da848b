"""Token exchange models for the OAuth 2.0 login flow.

Contains the token request, the raw HTTP exchange result and the parsed
token response. Nothing here is ever persisted.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict

REDACTED = "<redacted>"
SECRET_RESPONSE_FIELDS = ("access_token", "refresh_token")


@dataclass(frozen=True)
class TokenRequest:
    """Token exchange request parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636). Secret-bearing fields are
    excluded from ``repr``.
    """

    # Required fields first
    token_endpoint: str
    code: str = field(repr=False)
    redirect_uri: str
    client_id: str
    code_verifier: str = field(repr=False)

    # Optional fields with defaults last
    client_secret: str | None = field(default=None, repr=False)
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).

        Returns:
            Dictionary suitable for httpx data parameter
        """
        data = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "grant_type": self.grant_type,
            "code": self.code,
            "code_verifier": self.code_verifier,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret

        return data


@dataclass(frozen=True)
class ExchangeResponse:
    """Status and body returned by the HTTP exchange capability."""

    status_code: int
    body: str = field(repr=False)
    content_type: str = "application/json"

    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Providers may add their own fields; they are kept but never inspected.
    """

    model_config = ConfigDict(extra="allow")

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str | None = None
    scope: str | list[str] | None = None
    refresh_token: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def __repr_args__(self) -> Iterator[tuple[str | None, Any]]:
        for name, value in super().__repr_args__():
            if name in SECRET_RESPONSE_FIELDS and value is not None:
                yield name, REDACTED
            else:
                yield name, value

    def has_access_token(self) -> bool:
        return bool(self.access_token)

    def redacted(self) -> dict[str, Any]:
        """Return the response as a dict with secret fields replaced."""
        return redact_token_payload(self.model_dump(exclude_none=True))


def redact_token_payload(payload: Any) -> Any:
    """Replace access and refresh tokens in a decoded token response.

    Non-dict payloads are returned unchanged. The input is never mutated.
    """
    if not isinstance(payload, dict):
        return payload

    redacted = copy.deepcopy(payload)
    for key in SECRET_RESPONSE_FIELDS:
        if key in redacted:
            redacted[key] = REDACTED
    return redacted
