"""Authorization flow models.

Contains the fixed protocol parameters, the authorization request, and the
callback result handed from the local listener to the orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode


@dataclass(frozen=True)
class FlowParameters:
    """Protocol constants sent with every authorization request."""

    response_type: str = "code"
    prompt: str = "Login"
    scope: str = "openid wsp spa leases"
    code_challenge_method: str = "S256"
    response_mode: str = "form_post"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the PKCE flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    acr_values: str
    code_challenge: str
    state: str
    parameters: FlowParameters = FlowParameters()

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "response_type": self.parameters.response_type,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "acr_values": self.acr_values,
            "prompt": self.parameters.prompt,
            "scope": self.parameters.scope,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.parameters.code_challenge_method,
            "response_mode": self.parameters.response_mode,
            "state": self.state,
        }

        separator = "&" if "?" in self.authorization_endpoint else "?"
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"


@dataclass(frozen=True)
class CallbackResult:
    """What the local listener captured from the provider redirect."""

    code: str | None = None
    error: str | None = None
    error_description: str | None = None
    returned_state: str | None = None

    def is_success(self) -> bool:
        return self.error is None and self.code is not None

    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class AuthorizationCode:
    """Validated authorization code plus what the token exchange needs."""

    code: str
    code_verifier: str
    redirect_uri: str
    state: str
