"""Security-related models for the OAuth 2.0 login flow.

Contains the PKCE material generated once per login attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from gatepass.auth.client.models.errors import PKCEError


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) material for one login attempt.

    Immutable and never reused: a retry generates a fresh instance. The
    verifier is kept out of ``repr`` so it cannot leak through logs.
    """

    state: str
    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not self.state:
            raise PKCEError("state must not be empty")
        if not (43 <= len(self.code_verifier) <= 128):
            raise PKCEError("code_verifier must be 43-128 characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise PKCEError("code_challenge must be 43-128 characters")
        if self.code_challenge_method != "S256":
            raise PKCEError("Only S256 code challenge method is supported")
