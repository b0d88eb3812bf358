"""Authorization code exchange service.

Implements the RFC 6749 Section 4.1.3 token request with the PKCE
code_verifier (RFC 7636), for public and confidential clients.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from pkcelogin.models.discovery import ProviderMetadata
from pkcelogin.models.errors import ConfigurationError, TokenExchangeError
from pkcelogin.models.tokens import ClientAuthMethod, TokenRequest, TokenSet

logger = logging.getLogger(__name__)


class TokenExchangeClient:
    """Exchanges authorization codes for tokens.

    Makes exactly one attempt per code, since authorization codes are
    single-use. Uses application/x-www-form-urlencoded encoding as required
    by RFC 6749.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize the token exchange client.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange(
        self,
        metadata: ProviderMetadata,
        client_id: str,
        client_secret: str | None,
        redirect_uri: str,
        code: str,
        code_verifier: str,
        auth_method: ClientAuthMethod | None = None,
    ) -> TokenSet:
        """Exchange an authorization code for tokens.

        Args:
            metadata: Resolved provider metadata (token endpoint)
            client_id: OAuth client identifier
            client_secret: Client secret for confidential clients
            redirect_uri: Redirect URI used in the authorization request
            code: Authorization code from the callback
            code_verifier: PKCE verifier matching the challenge that was sent
            auth_method: Client authentication method, defaults to
                client_secret_post when a secret is given and none otherwise

        Returns:
            TokenSet: Tokens issued by the provider

        Raises:
            ConfigurationError: If a confidential method has no secret
            TokenExchangeError: If the exchange fails
        """
        if auth_method is None:
            auth_method = (
                ClientAuthMethod.CLIENT_SECRET_POST
                if client_secret
                else ClientAuthMethod.NONE
            )
        if auth_method.is_confidential and not client_secret:
            raise ConfigurationError(f"{auth_method.value} requires a client_secret")

        token_request = TokenRequest(
            token_endpoint=metadata.token_endpoint,
            code=code,
            redirect_uri=redirect_uri,
            client_id=client_id,
            code_verifier=code_verifier,
            client_secret=client_secret,
            auth_method=auth_method,
        )
        return await self.exchange_code_for_token(token_request)

    async def exchange_code_for_token(self, token_request: TokenRequest) -> TokenSet:
        """Send the token request and parse the response.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenSet: Tokens issued by the provider

        Raises:
            TokenExchangeError: On transport failure, non-200 status or an
                invalid response body
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        form_data = token_request.to_form_data()

        auth = None
        if token_request.auth_method is ClientAuthMethod.CLIENT_SECRET_BASIC:
            auth = httpx.BasicAuth(token_request.client_id, token_request.client_secret)

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}, "
            f"auth_method={token_request.auth_method.value}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
                auth=auth,
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"HTTP error during token exchange: {e}") from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenSet:
        """Parse token endpoint response into a TokenSet.

        Error responses (RFC 6749 Section 5.2) are raised with the provider's
        payload attached.

        Raises:
            TokenExchangeError: If the response is not a successful token set
        """
        payload = self._json_payload(response)

        if response.status_code != 200:
            error = payload.get("error") if payload else None
            error_description = payload.get("error_description") if payload else None
            logger.warning(
                f"Token exchange failed with {response.status_code}: "
                f"{error or 'unknown_error'} - "
                f"{error_description or 'No description provided'}"
            )
            raise TokenExchangeError(
                f"Token exchange failed ({response.status_code}): "
                f"{error or 'unknown_error'}"
                + (f" - {error_description}" if error_description else ""),
                status_code=response.status_code,
                error=error,
                error_description=error_description,
                payload=payload,
            )

        if payload is None:
            raise TokenExchangeError(
                "Token response is not a JSON object", status_code=200
            )
        if "access_token" not in payload:
            raise TokenExchangeError(
                "Token response missing required access_token",
                status_code=200,
                error=payload.get("error"),
                error_description=payload.get("error_description"),
                payload=payload,
            )

        try:
            token_set = TokenSet(**payload)
        except ValidationError as e:
            raise TokenExchangeError(
                f"Invalid token response format: {e}", status_code=200, payload=payload
            ) from e

        logger.info("Token exchange successful")
        return token_set

    def _json_payload(self, response: httpx.Response) -> dict[str, Any] | None:
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
