"""Authorization code to access token exchange.

Implements the RFC 6749 token request with the PKCE code_verifier
(RFC 7636). The HTTP POST is delegated to an injectable ``HttpExchange`` so
the exchange logic can be tested without a network.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib.parse import parse_qsl

import httpx
from pydantic import ValidationError

from gatepass.auth.client.models.errors import (
    MissingAccessTokenError,
    TokenExchangeRejectedError,
    TokenExchangeTransportError,
)
from gatepass.auth.client.models.tokens import (
    ExchangeResponse,
    TokenRequest,
    TokenResponse,
    redact_token_payload,
)

logger = logging.getLogger(__name__)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class HttpExchange(Protocol):
    """Performs a form-encoded POST and returns status and body."""

    async def post_form(
        self, url: str, data: dict[str, str], headers: dict[str, str]
    ) -> ExchangeResponse:
        """Send the request.

        Raises:
            TokenExchangeTransportError: If no response was received
        """
        ...

    async def close(self) -> None: ...


class HttpxExchange:
    """``HttpExchange`` backed by ``httpx.AsyncClient``."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def post_form(
        self, url: str, data: dict[str, str], headers: dict[str, str]
    ) -> ExchangeResponse:
        try:
            response = await self._http_client.post(url, data=data, headers=headers)
        except httpx.HTTPError as e:
            raise TokenExchangeTransportError(
                f"HTTP error during token exchange: {e}"
            ) from e

        return ExchangeResponse(
            status_code=response.status_code,
            body=response.text,
            content_type=response.headers.get("content-type", ""),
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()


def _decode_body(response: ExchangeResponse) -> dict[str, Any] | None:
    """Decode a token endpoint body as JSON, or form-encoded as a fallback."""
    try:
        data = json.loads(response.body)
    except ValueError:
        data = None

    if isinstance(data, dict):
        return data

    if "application/x-www-form-urlencoded" in response.content_type:
        return dict(parse_qsl(response.body, keep_blank_values=True))

    return None


class OAuth2TokenManager:
    """Exchanges an authorization code for an access token.

    Uses application/x-www-form-urlencoded encoding as required by
    RFC 6749. The access token is returned to the caller and never stored.
    """

    def __init__(self, exchange: HttpExchange | None = None, timeout: float = 30.0):
        """Initialize the token manager.

        Args:
            exchange: HTTP capability; defaults to an httpx-backed client
            timeout: HTTP request timeout in seconds for the default client
        """
        self.timeout = timeout
        self._exchange = exchange or HttpxExchange(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest, scopes: str | None = None
    ) -> str:
        """Exchange an authorization code for an access token.

        Args:
            token_request: Token exchange request parameters
            scopes: Requested scopes, only used in diagnostics

        Returns:
            The access token

        Raises:
            TokenExchangeTransportError: If the token endpoint was unreachable
            TokenExchangeRejectedError: If the endpoint answered non-2xx
            MissingAccessTokenError: If the response has no access_token
        """
        form_data = token_request.to_form_data()

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request to {token_request.token_endpoint}: "
            f"grant_type={form_data['grant_type']}, "
            f"client_secret={'yes' if 'client_secret' in form_data else 'no'}"
        )

        try:
            response = await self._exchange.post_form(
                token_request.token_endpoint, form_data, dict(FORM_HEADERS)
            )
        except TokenExchangeTransportError:
            raise
        except Exception as e:
            raise TokenExchangeTransportError(
                f"Unexpected error during token exchange: {e}"
            ) from e

        payload = _decode_body(response)

        if not response.is_success():
            body = (
                json.dumps(redact_token_payload(payload))
                if payload is not None
                else response.body
            )
            logger.warning(
                f"Token exchange rejected with status {response.status_code}: {body}"
            )
            raise TokenExchangeRejectedError(
                f"Token exchange failed with status {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        if payload is None:
            logger.warning("Token endpoint returned a body that is not JSON")
            self._log_diagnostics(token_request, scopes)
            raise MissingAccessTokenError("Token response could not be parsed")

        try:
            token_response = TokenResponse(**payload)
        except ValidationError as e:
            logger.warning(
                f"Token response (redacted): {redact_token_payload(payload)}"
            )
            self._log_diagnostics(token_request, scopes)
            raise MissingAccessTokenError(f"Invalid token response format: {e}") from e

        if not token_response.has_access_token():
            logger.warning(
                "Token endpoint response (redacted): "
                f"{json.dumps(token_response.redacted(), indent=2)}"
            )
            self._log_diagnostics(token_request, scopes)
            raise MissingAccessTokenError("No access_token in token response")

        logger.info("Token exchange successful")
        return token_response.access_token

    def _log_diagnostics(self, token_request: TokenRequest, scopes: str | None) -> None:
        logger.debug(f"Used redirect_uri: {token_request.redirect_uri}")
        logger.debug(f"Used scopes: {scopes or '<unknown>'}")
        logger.debug(f"Client ID present: {bool(token_request.client_id)}")
        logger.debug(f"Client secret provided: {token_request.client_secret is not None}")

    async def close(self) -> None:
        await self._exchange.close()
