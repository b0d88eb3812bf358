"""Exception hierarchy for the native OIDC/PKCE login flow.

Provides specific exception types for each failing stage so callers can tell
configuration, discovery, authorization and token failures apart.
"""

from __future__ import annotations

from typing import Any


class OAuth2Error(Exception):
    """Base exception for all login flow errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when required settings are missing or invalid."""

    pass


class DiscoveryError(OAuth2Error):
    """Raised when provider discovery fails.

    Attributes:
        step: Discovery step that failed
        field: Dotted name of the missing or invalid field, if any
    """

    def __init__(self, message: str, step: str, field: str | None = None):
        super().__init__(message)
        self.step = step
        self.field = field


class CustomerDiscoveryError(DiscoveryError):
    """Raised when the customer-scoped discovery document cannot be used."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, step="customer_configuration", field=field)


class OpenIDConfigurationError(DiscoveryError):
    """Raised when the well-known OpenID configuration cannot be used."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, step="openid_configuration", field=field)


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class BrowserLaunchError(OAuth2Error):
    """Raised when the authorization URL could not be opened.

    Not fatal: the user can still open the URL by hand.
    """

    pass


class ListenerError(OAuth2Error):
    """Raised when the local callback listener fails."""

    pass


class ListenerBindError(ListenerError):
    """Raised when the callback listener cannot bind its address."""

    pass


class AuthorizationError(OAuth2Error):
    """Raised when the user authorization step fails."""

    pass


class ListenerTimeoutError(AuthorizationError):
    """Raised when no callback arrived before the deadline."""

    pass


class AuthorizationAbortedError(AuthorizationError):
    """Raised when the flow is aborted before a callback arrived."""

    pass


class NoCodeReturnedError(AuthorizationError):
    """Raised when the callback carried an error or no authorization code."""

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
    ):
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class StateMismatchError(AuthorizationError):
    """Raised when the returned state does not match the one we sent.

    This indicates either a missing state parameter or a state mismatch,
    which could indicate a CSRF attack.
    """

    pass


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class TokenExchangeError(TokenError):
    """Raised when authorization code to token exchange fails.

    Carries the provider's error payload when one was returned.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
        payload: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description
        self.payload = payload
