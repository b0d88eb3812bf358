"""Discovery-related models for provider metadata.

Contains the customer-scoped discovery document, the provider's well-known
OpenID configuration, and the resolved metadata the rest of the flow uses.
"""

from __future__ import annotations

from dataclasses import dataclass, fields

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from pkcelogin.models.errors import ConfigurationError


class OIDCConfigurationSettings(BaseModel):
    """The `oidcConfiguration` block of the customer discovery document."""

    oidc_discovery_endpoint: StrictStr = Field(min_length=1)


class ClientSettings(BaseModel):
    """The `clientSettings` block of the customer discovery document."""

    model_config = ConfigDict(populate_by_name=True)

    acr_values: StrictStr = Field(min_length=1)
    oidc_configuration: OIDCConfigurationSettings = Field(alias="oidcConfiguration")


class CustomerDiscoveryDocument(BaseModel):
    """Customer-scoped discovery document.

    Returned by the per-customer discovery endpoint. Only the fields the
    login flow needs are modelled; everything else is ignored.
    """

    model_config = ConfigDict(populate_by_name=True)

    client_settings: ClientSettings = Field(alias="clientSettings")


class OpenIDConfiguration(BaseModel):
    """OpenID Provider Metadata (OpenID Connect Discovery 1.0).

    Fetched from the provider's `/.well-known/openid-configuration` document.
    """

    # Required for authorization code flow (our use case)
    authorization_endpoint: StrictStr = Field(min_length=1)
    token_endpoint: StrictStr = Field(min_length=1)

    # Absent when the provider does not advertise PKCE support
    code_challenge_methods_supported: list[str] | None = None


@dataclass(frozen=True)
class ProviderMetadata:
    """Resolved provider metadata for one login flow.

    Immutable once resolved. Every field must be a non-empty string.
    """

    customer_id: str
    application_id: str
    acr_values: str
    discovery_endpoint: str
    authorization_endpoint: str
    token_endpoint: str

    def __post_init__(self) -> None:
        missing = [
            f.name
            for f in fields(self)
            if not isinstance(getattr(self, f.name), str) or not getattr(self, f.name)
        ]
        if missing:
            raise ConfigurationError(
                f"Provider metadata is incomplete, missing: {', '.join(missing)}"
            )
