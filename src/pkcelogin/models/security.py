"""Security-related models for the PKCE login flow.

Contains PKCE parameters and the per-flow authorization state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ChallengeEncoding(str, Enum):
    """How the SHA-256 digest of the code verifier is encoded.

    BASE64URL is the RFC 7636 S256 transform. HEX matches identity providers
    that verify against a hexadecimal digest instead.
    """

    BASE64URL = "base64url"
    HEX = "hex"


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters.

    Immutable parameters generated for each authorization flow to prevent
    authorization code interception attacks (RFC 7636).
    """

    code_verifier: str = field()
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise ValueError("code_challenge must be 43-128 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")


@dataclass(frozen=True)
class AuthorizationState:
    """Per-flow security material.

    Owned by exactly one in-flight authorization run and never reused.
    """

    state: str
    pkce: PKCEParameters

    @property
    def code_verifier(self) -> str:
        return self.pkce.code_verifier

    @property
    def code_challenge(self) -> str:
        return self.pkce.code_challenge
