"""PKCE (Proof Key for Code Exchange) generation.

Implements RFC 7636 parameter generation to prevent authorization code
interception attacks.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from pkcelogin.models.errors import PKCEError
from pkcelogin.models.security import ChallengeEncoding, PKCEParameters

ALPHANUMERIC = string.ascii_letters + string.digits
CODE_VERIFIER_LENGTH = 128


def generate_random_string(length: int, alphabet: str = ALPHANUMERIC) -> str:
    """Generate a random string from a cryptographically secure source.

    Args:
        length: Number of characters to produce
        alphabet: Characters to draw from

    Returns:
        String of exactly `length` characters taken from `alphabet`
    """
    if length < 0:
        raise ValueError("length must not be negative")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def compute_code_challenge(
    code_verifier: str, encoding: ChallengeEncoding = ChallengeEncoding.BASE64URL
) -> str:
    """Derive the code challenge for a verifier with the S256 method.

    RFC 7636 Section 4.2: For S256, the code challenge is
    BASE64URL-ENCODE(SHA256(ASCII(code_verifier))). The HEX encoding yields
    the lowercase hexadecimal digest instead.

    Args:
        code_verifier: The code verifier to hash
        encoding: How to encode the SHA-256 digest

    Returns:
        Encoded digest of the code verifier
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()

    if encoding is ChallengeEncoding.HEX:
        return digest.hex()

    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates PKCE parameters for authorization flows.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method
    - Generates 128-character alphanumeric code verifiers from `secrets`
    """

    def __init__(self, encoding: ChallengeEncoding = ChallengeEncoding.BASE64URL):
        self.encoding = encoding

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow

        Raises:
            PKCEError: If parameter generation fails
        """
        try:
            code_verifier = generate_random_string(CODE_VERIFIER_LENGTH)
            code_challenge = compute_code_challenge(code_verifier, self.encoding)

            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_challenge,
                code_challenge_method="S256",
            )

        except Exception as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e
