"""Token request and response models.

Contains the authorization code exchange request (RFC 6749 Section 4.1.3)
and the token set returned by a successful exchange.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel


class ClientAuthMethod(str, Enum):
    """How the client authenticates at the token endpoint."""

    NONE = "none"  # Public client, PKCE only
    CLIENT_SECRET_POST = "client_secret_post"
    CLIENT_SECRET_BASIC = "client_secret_basic"

    @property
    def is_confidential(self) -> bool:
        return self is not ClientAuthMethod.NONE


@dataclass(frozen=True)
class TokenRequest:
    """Token exchange request parameters (RFC 6749 Section 4.1.3).

    Immutable request parameters for exchanging authorization codes for tokens.
    Includes the PKCE code_verifier (RFC 7636).
    """

    # Required fields first
    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str

    # Optional fields with defaults last
    client_secret: str | None = None
    auth_method: ClientAuthMethod = ClientAuthMethod.NONE
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).
        """
        data = {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }

        if self.auth_method is ClientAuthMethod.CLIENT_SECRET_POST:
            data["client_secret"] = self.client_secret

        return data


class TokenSet(BaseModel):
    """Tokens issued by a successful exchange (RFC 6749 Section 5.1)."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str | None = None

    def calculate_expires_at(self) -> float | None:
        """Calculate absolute expiry timestamp from expires_in.

        Returns:
            Unix timestamp when token expires, or None if no expiry
        """
        if self.expires_in is None:
            return None
        return time.time() + self.expires_in
