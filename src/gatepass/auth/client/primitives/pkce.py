"""PKCE (Proof Key for Code Exchange) manager for the OAuth 2.0 login flow.

Implements RFC 7636 parameter generation to prevent authorization code
interception attacks, plus the state token used for CSRF protection.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from gatepass.auth.client.models.security import PKCEParameters

STATE_BYTES = 24
VERIFIER_BYTES = 64


def _urlsafe_b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class PKCEManager:
    """Manages PKCE parameter generation for authorization code flows.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Generates cryptographically secure code verifiers
    - Generates a state parameter for CSRF protection
    """

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Creates a cryptographically secure code verifier and derives the
        corresponding code challenge using SHA256. Also generates a state
        parameter for CSRF protection. Failures of the random source
        propagate unchanged.

        Returns:
            PKCEParameters: Immutable parameters for one login attempt
        """
        code_verifier = self._generate_code_verifier()

        return PKCEParameters(
            state=self._generate_state(),
            code_verifier=code_verifier,
            code_challenge=self.generate_code_challenge(code_verifier),
            code_challenge_method="S256",
        )

    @staticmethod
    def generate_code_challenge(code_verifier: str) -> str:
        """Derive the S256 code challenge from a code verifier.

        RFC 7636 Section 4.2: For S256, the code challenge is:
        BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
        """
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return _urlsafe_b64(digest)

    def _generate_code_verifier(self) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: code verifier must be 43-128 characters long.
        64 random bytes encode to 86 unpadded base64url characters.
        """
        return _urlsafe_b64(secrets.token_bytes(VERIFIER_BYTES))

    def _generate_state(self) -> str:
        """Generate a URL-safe state parameter from 24 random bytes."""
        return _urlsafe_b64(secrets.token_bytes(STATE_BYTES))


def generate_pkce() -> PKCEParameters:
    return PKCEManager().generate_parameters()
