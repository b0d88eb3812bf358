"""Security utilities for the login flow.

Provides cryptographically secure state generation and validation, and the
redirect URI checks that decide where the local callback listener binds.
"""

from __future__ import annotations

import secrets
import string
from urllib.parse import urlparse

from pkcelogin.models.errors import ConfigurationError, StateMismatchError

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


def generate_state() -> str:
    """Generate cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the callback
    matches the original authorization request.

    Returns:
        Cryptographically secure random state string (32 characters)
    """
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(32))


def validate_state(expected: str, actual: str | None) -> None:
    """Validate state parameter matches expected value.

    Args:
        expected: State parameter from original authorization request
        actual: State parameter echoed back on the callback

    Raises:
        StateMismatchError: If state is missing or doesn't match
    """
    if actual is None:
        raise StateMismatchError("Callback missing required state parameter")
    if not secrets.compare_digest(expected.encode(), actual.encode()):
        raise StateMismatchError("State parameter mismatch - possible CSRF attack")


def parse_redirect_uri(uri: str) -> tuple[str, int, str]:
    """Split a loopback redirect URI into listener bind settings.

    Args:
        uri: Redirect URI registered with the provider

    Returns:
        Tuple of (bind_host, port, path)

    Raises:
        ConfigurationError: If the URI can't be served by a local listener
    """
    try:
        parsed = urlparse(uri)
        port = parsed.port
    except ValueError as e:
        raise ConfigurationError(f"Malformed redirect URI {uri!r}: {e}") from e

    if parsed.scheme != "http":
        raise ConfigurationError(f"Redirect URI must use http: {uri}")
    if parsed.hostname not in LOOPBACK_HOSTS:
        raise ConfigurationError(f"Redirect URI must point at a loopback host: {uri}")
    if port is None:
        raise ConfigurationError(f"Redirect URI must include a port: {uri}")

    # Browsers resolve localhost to IPv4 first
    host = "127.0.0.1" if parsed.hostname == "localhost" else parsed.hostname
    return host, port, parsed.path or "/"

